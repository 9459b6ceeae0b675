# Main script to run the agenda api, startup scripts, start the different routers

import logging
import bootstrap
from fastapi import FastAPI
from routers import users, agendas, events, holidays

# Initialize logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Check if the store is set up, if not, create the schema and the admin user
bootstrap.setup_database()

# Initialize FastAPI app
app = FastAPI(title="Agenda-API", version="0.1.0")

# Include routers
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(agendas.router, prefix="/agendas", tags=["agendas"])
app.include_router(events.router, prefix="/events", tags=["events"])
app.include_router(holidays.router, prefix="/holidays", tags=["holidays"])

# Health check endpoint
@app.get("/health")
async def health():
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

# Bootstrap module for the Agenda API: schema creation and the initial admin user
import logging
import utils
import database

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ["users", "agendas", "events"]


def check_db_is_setup():
    """Check if the agenda database exists and contains all required tables."""
    db_cursor = database.get_cursor()
    db_cursor.execute("SHOW DATABASES")
    databases = [db[0] for db in db_cursor.fetchall()]

    if database.MYSQL_DATABASE not in databases:
        return False

    db_cursor.execute(f"USE {database.MYSQL_DATABASE}")
    db_cursor.execute("SHOW TABLES")
    tables = [table[0] for table in db_cursor.fetchall()]

    database.get_connection().commit()

    return all(table in tables for table in REQUIRED_TABLES)


def create_db_and_scheme():
    """Create the agenda database and all necessary tables."""
    db_cursor = database.get_cursor()

    # Create database and select it
    db_cursor.execute(f"CREATE DATABASE IF NOT EXISTS {database.MYSQL_DATABASE} CHARACTER SET utf8mb4;")
    db_cursor.execute(f"USE {database.MYSQL_DATABASE};")

    # One statement per table, mysql-connector refuses multi statements by default
    db_cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id                   CHAR(8)      PRIMARY KEY,
            api_key_hash         CHAR(64)     NOT NULL,
            role                 ENUM('user','admin') NOT NULL DEFAULT 'user',
            created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP
        )
        """
    )
    db_cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS agendas (
            id                   INT          AUTO_INCREMENT PRIMARY KEY,
            user_id              CHAR(8)      NOT NULL,
            name                 VARCHAR(50)  NOT NULL,
            color                CHAR(7)      NOT NULL DEFAULT '#3498db',
            created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
            UNIQUE (user_id, name)
        )
        """
    )
    db_cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS events (
            id                   INT          AUTO_INCREMENT PRIMARY KEY,
            agenda_id            INT          NOT NULL,
            title                VARCHAR(200) NOT NULL,
            start_datetime       DATETIME(6)  NOT NULL,
            end_datetime         DATETIME(6)  NOT NULL,
            all_day              BOOLEAN      NOT NULL DEFAULT FALSE,
            description          VARCHAR(1000) NOT NULL DEFAULT '',
            emoji                VARCHAR(16)  NULL,
            recurrence           JSON         NULL,
            created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
            FOREIGN KEY (agenda_id) REFERENCES agendas(id) ON DELETE CASCADE,
            INDEX idx_events_agenda_start (agenda_id, start_datetime)
        )
        """
    )

    database.get_connection().commit()


def create_admin_user(store):
    """Create the initial admin user and log credentials."""
    admin_id = utils.generate_user_id()
    admin_api_key = utils.generate_api_key()
    api_key_hash = utils.hash_api_key(admin_api_key)

    store.create_user(admin_id, api_key_hash, role="admin", with_default_agenda=False)

    # Log credentials (will appear in Docker logs)
    logger.info("=" * 60)
    logger.info("AGENDA-API ADMIN USER CREATED")
    logger.info(f"Admin User ID: {admin_id}")
    logger.info(f"Admin API Key: {admin_api_key}")
    logger.info("SAVE THESE CREDENTIALS - THEY WILL NOT BE SHOWN AGAIN!")
    logger.info("Use these credentials to manage users via the API.")
    logger.info("=" * 60)

    return admin_id, admin_api_key


def setup_database():
    """Ensure the store is ready: create the MySQL schema if needed and an admin user if none exists."""
    store = database.get_store()
    created = False

    if database.get_store_backend() == "mysql":
        logger.info("Checking if the database is set up...")
        if not check_db_is_setup():
            logger.info("Database not found or incomplete. Setting up...")
            create_db_and_scheme()
            logger.info("Database and tables created successfully.")
            created = True
        else:
            logger.info("Database is already set up.")

    if not store.has_admin():
        create_admin_user(store)
        logger.info("Admin user created successfully.")
        created = True

    return created

from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()


def enable_sqlite_savepoints(app) -> None:
    """Make SQLite run each session transaction as one real transaction.

    pysqlite defers BEGIN until the first write and treats the first SAVEPOINT
    as the transaction itself, so releasing it commits. With the driver's own
    handling switched off and BEGIN emitted by SQLAlchemy, savepoints nest
    inside the outer transaction and a rollback undoes all of it.
    """

    with app.app_context():
        engine = db.engine
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection):
        connection.exec_driver_sql("BEGIN")

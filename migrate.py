#!/usr/bin/env python3
"""
Script para gestionar las migraciones de la base de caja con Alembic.

La URL de conexión sale siempre de ``settings.database_url``; el valor de
``alembic.ini`` se ignora.
"""
import sys
from pathlib import Path

# Agregar el directorio raíz al path
root_dir = Path(__file__).parent
sys.path.insert(0, str(root_dir))

from alembic.config import Config
from alembic import command
from app.core.config import settings
import logging

logger = logging.getLogger("migrate")


def get_alembic_config() -> Config:
    """Configuración de Alembic apuntando a la base de settings."""
    alembic_cfg = Config(str(root_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(root_dir / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    return alembic_cfg


def create_migration(message: str):
    """Crear nueva migración autogenerada desde los modelos."""
    command.revision(get_alembic_config(), autogenerate=True, message=message)
    logger.info(f"Migration created: {message}")


def run_migrations(revision: str = "head"):
    """Aplicar migraciones hasta ``revision``."""
    command.upgrade(get_alembic_config(), revision)
    logger.info(f"Database upgraded to {revision}")


def rollback_migration(revision: str = "-1"):
    """Revertir migraciones hasta ``revision``."""
    command.downgrade(get_alembic_config(), revision)
    logger.info(f"Database downgraded to {revision}")


def stamp(revision: str = "head"):
    """Marcar la base como migrada sin ejecutar cambios (tablas creadas con create_all)."""
    command.stamp(get_alembic_config(), revision)
    logger.info(f"Database stamped at {revision}")


COMMANDS = {
    "upgrade": run_migrations,
    "downgrade": rollback_migration,
    "stamp": stamp,
    "history": lambda: command.history(get_alembic_config()),
    "current": lambda: command.current(get_alembic_config()),
}

USAGE = """Uso:
  python migrate.py create 'message'     # Crear migración
  python migrate.py upgrade [revision]   # Ejecutar migraciones
  python migrate.py downgrade [revision] # Rollback
  python migrate.py stamp [revision]     # Marcar revisión sin migrar
  python migrate.py history              # Ver historial
  python migrate.py current              # Ver actual"""


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    action, args = sys.argv[1], sys.argv[2:]

    if action == "create":
        if not args:
            print("Error: Se requiere un mensaje para la migración")
            sys.exit(1)
        create_migration(args[0])
    elif action in COMMANDS:
        COMMANDS[action](*args[:1])
    else:
        print(f"Acción desconocida: {action}")
        print(USAGE)
        sys.exit(1)

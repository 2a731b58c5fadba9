"""
Repository adapters for the supplier matching engine.

Example usage:
    from database import Database
    from supplier_engine.database import EngineDB

    database = Database()
    await database.init()
    repo = EngineDB(database)

    project = await repo.find_project(project_id)
    members = await repo.find_category_members(project.category_id)
"""

from .sqlalchemy_adapter import EngineDB

__all__ = ['EngineDB']

import pytest
from sqlalchemy import Connection

from itemvault.repositories.sqlalchemy import SQLAlchemyItemRepository, SQLAlchemyUserRepository


@pytest.fixture()
def user_repo(db_connection: Connection) -> SQLAlchemyUserRepository:
    return SQLAlchemyUserRepository(db_connection)


@pytest.fixture()
def item_repo(db_connection: Connection) -> SQLAlchemyItemRepository:
    return SQLAlchemyItemRepository(db_connection)

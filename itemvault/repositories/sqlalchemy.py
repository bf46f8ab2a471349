from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Connection, text
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import IntegrityError

from itemvault.errors import Conflict
from itemvault.models.item import Item
from itemvault.models.user import User
from itemvault.repositories.base import ItemRepository, UserRepository


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLAlchemyUserRepository(UserRepository):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _row_to_user(row: RowMapping) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            password_hash=row["password_hash"],
            failed_attempts=row["failed_attempts"] or 0,
            locked_until=row["locked_until"],
            last_attempt_time=row["last_attempt_time"],
            passkey_credential_id=row["passkey_credential_id"],
            passkey_public_key=row["passkey_public_key"],
            passkey_sign_count=row["passkey_sign_count"] or 0,
            current_challenge=row["current_challenge"],
            created_at=row["created_at"],
        )

    def _fetch_one(self, where: str, params: dict) -> User | None:
        row = self.conn.execute(text(f"SELECT * FROM users WHERE {where}"), params).mappings().fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def create(self, user: User) -> User:
        try:
            self.conn.execute(
                text(
                    "INSERT INTO users (username, password_hash, failed_attempts, created_at) "
                    "VALUES (:username, :password_hash, 0, :created_at)"
                ),
                {"username": user.username, "password_hash": user.password_hash, "created_at": _now()},
            )
            self.conn.commit()
        except IntegrityError:
            self.conn.rollback()
            raise Conflict("Username already exists") from None
        created = self.get_by_username(user.username)
        if created is None:
            raise RuntimeError(f"Failed to retrieve user after create (username={user.username})")
        return created

    def get_by_id(self, user_id: int) -> User | None:
        return self._fetch_one("id = :id", {"id": user_id})

    def get_by_username(self, username: str) -> User | None:
        return self._fetch_one("username = :username", {"username": username})

    def get_by_credential_id(self, credential_id: str) -> User | None:
        return self._fetch_one("passkey_credential_id = :cid", {"cid": credential_id})

    def update_lockout(
        self,
        user_id: int,
        failed_attempts: int,
        locked_until: datetime | None,
        last_attempt_time: datetime | None,
    ) -> None:
        self.conn.execute(
            text(
                "UPDATE users SET failed_attempts = :failed_attempts, locked_until = :locked_until, "
                "last_attempt_time = COALESCE(:last_attempt_time, last_attempt_time) WHERE id = :id"
            ),
            {
                "failed_attempts": failed_attempts,
                "locked_until": locked_until,
                "last_attempt_time": last_attempt_time,
                "id": user_id,
            },
        )
        self.conn.commit()

    def update_passkey(self, user_id: int, credential_id: str, public_key: str, sign_count: int) -> None:
        try:
            self.conn.execute(
                text(
                    "UPDATE users SET passkey_credential_id = :credential_id, passkey_public_key = :public_key, "
                    "passkey_sign_count = :sign_count, current_challenge = NULL WHERE id = :id"
                ),
                {"credential_id": credential_id, "public_key": public_key, "sign_count": sign_count, "id": user_id},
            )
            self.conn.commit()
        except IntegrityError:
            self.conn.rollback()
            raise Conflict("Passkey is already registered to another account") from None

    def update_challenge(self, user_id: int, challenge: str | None) -> None:
        self.conn.execute(
            text("UPDATE users SET current_challenge = :challenge WHERE id = :id"),
            {"challenge": challenge, "id": user_id},
        )
        self.conn.commit()


class SQLAlchemyItemRepository(ItemRepository):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _row_to_item(row: RowMapping) -> Item:
        return Item(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            user_id=row["user_id"],
            created_at=row["created_at"],
        )

    def create(self, item: Item) -> Item:
        result = self.conn.execute(
            text(
                "INSERT INTO items (name, description, user_id, created_at) "
                "VALUES (:name, :description, :user_id, :created_at)"
            ),
            {"name": item.name, "description": item.description, "user_id": item.user_id, "created_at": _now()},
        )
        self.conn.commit()
        created = self.get_for_owner(result.lastrowid, item.user_id)
        if created is None:
            raise RuntimeError(f"Failed to retrieve item after create (user_id={item.user_id})")
        return created

    def get_for_owner(self, item_id: int, user_id: int) -> Item | None:
        row = (
            self.conn.execute(
                text("SELECT * FROM items WHERE id = :id AND user_id = :user_id"),
                {"id": item_id, "user_id": user_id},
            )
            .mappings()
            .fetchone()
        )
        if row is None:
            return None
        return self._row_to_item(row)

    def list_by_owner(self, user_id: int) -> list[Item]:
        rows = (
            self.conn.execute(
                text("SELECT * FROM items WHERE user_id = :user_id ORDER BY created_at DESC, id DESC"),
                {"user_id": user_id},
            )
            .mappings()
            .fetchall()
        )
        return [self._row_to_item(row) for row in rows]

    def update(self, item: Item) -> Item:
        self.conn.execute(
            text("UPDATE items SET name = :name, description = :description WHERE id = :id AND user_id = :user_id"),
            {"name": item.name, "description": item.description, "id": item.id, "user_id": item.user_id},
        )
        self.conn.commit()
        updated = self.get_for_owner(item.id, item.user_id)
        if updated is None:
            raise RuntimeError(f"Failed to retrieve item after update (id={item.id})")
        return updated

    def delete(self, item_id: int, user_id: int) -> None:
        self.conn.execute(
            text("DELETE FROM items WHERE id = :id AND user_id = :user_id"),
            {"id": item_id, "user_id": user_id},
        )
        self.conn.commit()

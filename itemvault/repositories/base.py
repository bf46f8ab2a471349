from abc import ABC, abstractmethod
from datetime import datetime

from itemvault.models.item import Item
from itemvault.models.user import User


class UserRepository(ABC):
    @abstractmethod
    def create(self, user: User) -> User: ...

    @abstractmethod
    def get_by_id(self, user_id: int) -> User | None: ...

    @abstractmethod
    def get_by_username(self, username: str) -> User | None: ...

    @abstractmethod
    def get_by_credential_id(self, credential_id: str) -> User | None: ...

    @abstractmethod
    def update_lockout(
        self,
        user_id: int,
        failed_attempts: int,
        locked_until: datetime | None,
        last_attempt_time: datetime | None,
    ) -> None: ...

    @abstractmethod
    def update_passkey(self, user_id: int, credential_id: str, public_key: str, sign_count: int) -> None: ...

    @abstractmethod
    def update_challenge(self, user_id: int, challenge: str | None) -> None: ...


class ItemRepository(ABC):
    @abstractmethod
    def create(self, item: Item) -> Item: ...

    @abstractmethod
    def get_for_owner(self, item_id: int, user_id: int) -> Item | None: ...

    @abstractmethod
    def list_by_owner(self, user_id: int) -> list[Item]: ...

    @abstractmethod
    def update(self, item: Item) -> Item: ...

    @abstractmethod
    def delete(self, item_id: int, user_id: int) -> None: ...

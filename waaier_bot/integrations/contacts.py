"""
連絡先解決

送信者IDから表示名を解決します。連絡先データはトランスポート側が所有し、
コアは resolve() を呼び出すだけです。
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)


class ContactResolver(ABC):
    """送信者ID -> 表示名 の解決インターフェース"""

    @abstractmethod
    def resolve(self, sender_id: str) -> Optional[str]:
        """表示名を返す（不明な場合は None）"""


class ContactBook(ContactResolver):
    """メモリ上の連絡先帳"""

    def __init__(self, contacts: Optional[Dict[str, str]] = None):
        self._contacts: Dict[str, str] = dict(contacts or {})

    def resolve(self, sender_id: str) -> Optional[str]:
        if not sender_id:
            return None
        return self._contacts.get(sender_id) or None

    def update(self, sender_id: str, display_name: str) -> None:
        """連絡先を登録・更新（トランスポートの連絡先同期から呼ばれる）"""
        if not display_name:
            logger.warning(f"空の表示名は登録できません: {sender_id}")
            return
        self._contacts[sender_id] = display_name

    def remove(self, sender_id: str) -> None:
        self._contacts.pop(sender_id, None)

    def __contains__(self, sender_id: str) -> bool:
        return sender_id in self._contacts

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self._contacts.items())

    def __len__(self) -> int:
        return len(self._contacts)

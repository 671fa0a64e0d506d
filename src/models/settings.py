"""
Runtime ledger settings an administrator can switch without a redeploy.
"""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base

DUPLICATE_DEDUCTION_RULE = "duplicate_deduction_rule"
TRANSACTIONS_PAGE_SIZE = "transactions_page_size"

# Seeded on startup when missing; the duplicate rule default comes from
# the environment (Settings.duplicate_deduction_rule).
SETTING_DEFAULTS: dict[str, Any] = {
    TRANSACTIONS_PAGE_SIZE: 50,
}


class SystemSetting(Base):
    """
    One setting, stored as a {"v": value} JSON wrapper.

    Keys:
    - duplicate_deduction_rule: "sale_and_amount" or "sale_and_carry_forward"
    - transactions_page_size: default page size of the transaction listing
    """

    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[dict] = mapped_column(JSON, nullable=False)

    @classmethod
    def wrap(cls, key: str, val: Any) -> "SystemSetting":
        return cls(key=key, value={"v": val})

    def get_value(self) -> Any:
        if isinstance(self.value, dict) and "v" in self.value:
            return self.value["v"]
        return self.value

    def set_value(self, val: Any) -> None:
        # Reassign so the JSON column is flagged dirty
        self.value = {"v": val}

    def __repr__(self) -> str:
        return f"<SystemSetting(key='{self.key}', value={self.get_value()!r})>"

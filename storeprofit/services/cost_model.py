"""Load a store's cost model from the database."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from storeprofit.core.config import Settings, get_settings
from storeprofit.core.logging import get_logger
from storeprofit.db.models import (
    CogsConfig,
    OperationalExpense,
    ProcessingFeesConfig,
    ShippingConfig,
)
from storeprofit.domain.expenses import ExpenseRecord
from storeprofit.domain.orders import ProcessingFeeConfig
from storeprofit.domain.shipping import ShippingMatrix

log = get_logger("storeprofit.cost_model")


@dataclass
class CostModel:
    """Merchant-defined costs keyed by variant/product id."""

    cogs: dict[str, float] = field(default_factory=dict)
    shipping: dict[str, ShippingMatrix] = field(default_factory=dict)
    fees: ProcessingFeeConfig = field(default_factory=ProcessingFeeConfig)
    expenses: list[ExpenseRecord] = field(default_factory=list)


def load_cost_model(db: Session, store_id: int, settings: Settings | None = None) -> CostModel:
    """Read COGS, shipping matrices, fee config and expenses for one store.

    Shipping rows whose JSON does not parse into a matrix are skipped with a
    warning; they then cost 0 like any unconfigured product.
    """
    s = settings or get_settings()
    model = CostModel(
        fees=ProcessingFeeConfig(percent_fee=s.default_percent_fee, fixed_fee=s.default_fixed_fee)
    )

    for row in db.scalars(select(CogsConfig).where(CogsConfig.store_id == store_id)):
        model.cogs[row.variant_id] = float(row.cogs_value or 0.0)

    for row in db.scalars(select(ShippingConfig).where(ShippingConfig.store_id == store_id)):
        try:
            matrix = ShippingMatrix.from_config(json.loads(row.config_json))
        except (TypeError, ValueError) as e:
            log.warning(
                "shipping_config_invalid",
                extra={"store_id": store_id, "variant_id": row.variant_id, "error": str(e)},
            )
            continue
        if matrix is None:
            log.warning(
                "shipping_config_invalid",
                extra={"store_id": store_id, "variant_id": row.variant_id, "error": "not a matrix"},
            )
            continue
        model.shipping[row.variant_id] = matrix

    fees = db.scalar(select(ProcessingFeesConfig).where(ProcessingFeesConfig.store_id == store_id))
    if fees is not None:
        model.fees = ProcessingFeeConfig(percent_fee=fees.percent_fee, fixed_fee=fees.fixed_fee)

    for row in db.scalars(
        select(OperationalExpense).where(OperationalExpense.store_id == store_id)
    ):
        model.expenses.append(
            ExpenseRecord(
                type=row.type,
                amount=float(row.amount or 0.0),
                currency=row.currency or "USD",
                expense_date=row.expense_date,
                start_date=row.start_date,
                end_date=row.end_date,
                is_active=bool(row.is_active),
                title=row.title,
            )
        )

    log.debug(
        "cost_model_loaded",
        extra={
            "store_id": store_id,
            "cogs_keys": len(model.cogs),
            "shipping_keys": len(model.shipping),
            "expenses": len(model.expenses),
        },
    )
    return model


__all__ = ["CostModel", "load_cost_model"]

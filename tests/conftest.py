"""
Test Suite Configuration
"""
from datetime import date, timedelta
from typing import Any, Dict, List

import pytest

from predictiq.config import PipelineConfig, Settings
from predictiq.models import TransactionRecord


EVALUATION_DATE = date(2025, 1, 31)
SCENARIO_UNITS = [10, 12, 11, 13, 12, 14, 13, 15, 14, 16]


def make_record(
    day: date,
    product: str = "Widget",
    units: int = 10,
    price: float = 5.0,
    row_index: int = 0,
    **overrides: Any,
) -> TransactionRecord:
    """Build a valid record with revenue = units * price"""
    values = {
        "date": day,
        "product": product,
        "units_sold": units,
        "unit_price": price,
        "revenue": units * price,
        "row_index": row_index,
        "lead_time_days": 7.0,
        "stock_level": 100,
    }
    values.update(overrides)
    return TransactionRecord(**values)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def pinned_config() -> PipelineConfig:
    """Default options with a fixed evaluation date"""
    return PipelineConfig.build({"evaluationDate": EVALUATION_DATE})


@pytest.fixture
def scenario_records() -> List[TransactionRecord]:
    """Ten consecutive days of one product at a constant price"""
    start = date(2025, 1, 1)
    return [
        make_record(start + timedelta(days=i), units=units, row_index=i)
        for i, units in enumerate(SCENARIO_UNITS)
    ]


@pytest.fixture
def raw_rows() -> List[Dict[str, Any]]:
    """Upload-shaped rows for three products, two stores and three segments"""
    rows = []
    start = date(2025, 1, 1)
    products = [("Rice 5kg", 75.0, 20), ("Sugar 2kg", 32.0, 12), ("Soap Bar", 10.0, 5)]

    for offset in range(12):
        day = start + timedelta(days=offset)
        for p_index, (product, price, base_units) in enumerate(products):
            units = base_units + (offset % 4)
            # Families buy the staples together; soap alternates between segments
            if p_index < 2:
                segment = "Families"
            else:
                segment = "Students" if offset % 2 == 0 else "Retirees"
            rows.append({
                "Date": day.strftime("%d/%m/%Y"),
                "Store": "Gaborone" if offset % 2 == 0 else "Francistown",
                "Product": product,
                "Units_Sold": units,
                "Price_per_Unit_BWP": price,
                "Revenue_BWP": round(units * price, 2),
                "Stock_Level": 200 - offset * 10,
                "Lead_Time_Days": 5,
                "Customer_Demographic": segment,
                "Promotion_Active": 1 if offset % 3 == 0 else 0,
                "Competition_Price_BWP": price * 1.1,
            })
    return rows


@pytest.fixture
def record_factory():
    """Factory for valid TransactionRecords"""
    return make_record

"""
Synthetic Data Generator

Generates realistic retail transaction uploads for demos and tests.
Includes:
- Stores and a product catalogue with base prices
- Weekly seasonality and promotion uplift in unit sales
- Competitor prices around our own
- Stock levels that draw down and get replenished
"""

from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import polars as pl
from faker import Faker
import numpy as np
import structlog

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

PRODUCTS = [
    ("Maize Meal 10kg", 89.99),
    ("Cooking Oil 2L", 54.50),
    ("Sugar 2kg", 32.00),
    ("Rice 5kg", 74.95),
    ("Bread Loaf", 12.50),
    ("Milk 1L", 14.99),
    ("Tea Bags 100s", 38.75),
    ("Soap Bar", 9.99),
]

CUSTOMER_DEMOGRAPHICS = [
    ("Young Professionals", 0.25),
    ("Families", 0.35),
    ("Students", 0.15),
    ("Retirees", 0.10),
    ("Small Businesses", 0.15),
]

# Monday .. Sunday
WEEKDAY_FACTORS = [0.9, 0.85, 0.9, 1.0, 1.2, 1.35, 0.8]

PROMOTION_PROBABILITY = 0.15
PROMOTION_UPLIFT = 1.4
PROMOTION_DISCOUNT = 0.9


# =============================================================================
# GENERATORS
# =============================================================================

class TransactionGenerator:
    """
    Generate upload-shaped transaction rows.

    Rows use the column names of the dashboard export (Date, Store, Product,
    Units_Sold, ...). Output is fully determined by ``seed``.

    Example:
        rows = TransactionGenerator(seed=7).generate(days=60)
        records, rejected = normalize(rows)
    """

    def __init__(
        self,
        seed: int = 42,
        n_stores: int = 3,
        n_products: int = 5,
        start_date: Optional[date] = None,
    ):
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)

        self.stores = [f"{self.fake.city()} Store" for _ in range(n_stores)]
        self.products = PRODUCTS[:n_products]
        self.start_date = start_date or date(2024, 1, 1)

    def _demographic(self) -> str:
        names = [name for name, _ in CUSTOMER_DEMOGRAPHICS]
        weights = [weight for _, weight in CUSTOMER_DEMOGRAPHICS]
        return str(self.rng.choice(names, p=weights))

    def generate(self, days: int = 90) -> List[Dict[str, Any]]:
        """Generate one row per store, product and day"""
        rows = []
        stock = {
            (store, product): int(self.rng.integers(150, 400))
            for store in self.stores
            for product, _ in self.products
        }
        base_demand = {
            product: float(self.rng.uniform(8, 40))
            for product, _ in self.products
        }

        for offset in range(days):
            day = self.start_date + timedelta(days=offset)
            weekday_factor = WEEKDAY_FACTORS[day.weekday()]

            for store in self.stores:
                for product, base_price in self.products:
                    promotion = bool(self.rng.random() < PROMOTION_PROBABILITY)
                    demand = base_demand[product] * weekday_factor
                    if promotion:
                        demand *= PROMOTION_UPLIFT
                    units = int(self.rng.poisson(demand))

                    price = base_price * (PROMOTION_DISCOUNT if promotion else 1.0)
                    price = round(price * float(self.rng.normal(1.0, 0.02)), 2)
                    competitor = round(base_price * float(self.rng.normal(1.0, 0.06)), 2)

                    key = (store, product)
                    if stock[key] < units:
                        stock[key] += int(self.rng.integers(200, 500))
                    stock[key] -= units

                    rows.append({
                        "Date": day.isoformat(),
                        "Store": store,
                        "Product": product,
                        "Units_Sold": units,
                        "Price_per_Unit_BWP": price,
                        "Revenue_BWP": round(units * price, 2),
                        "Stock_Level": stock[key],
                        "Lead_Time_Days": int(self.rng.integers(3, 15)),
                        "Customer_Demographic": self._demographic(),
                        "Promotion_Active": int(promotion),
                        "Competition_Price_BWP": competitor,
                    })

        logger.info(
            "Generated transactions",
            rows=len(rows),
            days=days,
            stores=len(self.stores),
            products=len(self.products),
        )
        return rows

    def to_frame(self, days: int = 90) -> pl.DataFrame:
        return pl.DataFrame(self.generate(days))

    def save_csv(self, path: str, days: int = 90) -> Path:
        """Write a generated upload to CSV"""
        output = Path(path)
        output.parent.mkdir(parents=True, exist_ok=True)
        self.to_frame(days).write_csv(output)
        logger.info("Saved dataset", path=str(output))
        return output

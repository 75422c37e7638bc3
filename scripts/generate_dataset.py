"""
Sample Upload Generator
Writes a synthetic transaction table in the dashboard's upload format
"""

import argparse
from pathlib import Path

from predictiq.data.generators import TransactionGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic transaction upload")
    parser.add_argument("--days", type=int, default=90, help="Days of history (default: 90)")
    parser.add_argument("--stores", type=int, default=3, help="Number of stores (default: 3)")
    parser.add_argument("--products", type=int, default=5, help="Number of products (default: 5)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--output",
        default=str(OUTPUT_DIR / "transactions.csv"),
        help="CSV file to write",
    )
    args = parser.parse_args()

    print("=" * 60)
    print("Synthetic Transaction Generator")
    print("=" * 60 + "\n")

    generator = TransactionGenerator(
        seed=args.seed,
        n_stores=args.stores,
        n_products=args.products,
    )
    df = generator.to_frame(args.days)

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    df.write_csv(output)

    size = output.stat().st_size / 1024
    print(f"   {output.name}: {df.height:,} rows ({size:.1f} KB)")
    print(f"\nOutput: {output}\n")


if __name__ == "__main__":
    main()

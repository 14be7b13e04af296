"""
Sales Dataset Generator
Writes a synthetic sales table in the published dataset layout.

Usage:
    python scripts/generate_dataset.py --rows 1000 --output data/generated/sales.csv
"""

import argparse
from pathlib import Path

from sales_analytics.config.logging import configure_logging
from sales_analytics.data.generators import SalesDataGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic sales dataset")
    parser.add_argument("--rows", type=int, default=1000, help="Transactions to generate (default: 1000)")
    parser.add_argument("--customers", type=int, default=200, help="Distinct customers (default: 200)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--output",
        type=Path,
        default=OUTPUT_DIR / "sales.csv",
        help="Output CSV path",
    )
    args = parser.parse_args()

    configure_logging()

    generator = SalesDataGenerator(seed=args.seed, n_customers=args.customers)
    path = generator.write_csv(args.output, n=args.rows)
    print(f"Generated {args.rows:,} rows -> {path}")


if __name__ == "__main__":
    main()

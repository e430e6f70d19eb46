import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Add parent directory to sys.path to allow importing from project
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.catalog import catalog_as_dict

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("export_product_config")

def export_product_config(output: Path) -> int:
    """
    Write the product catalog as JSON. The file can be loaded back through
    PRODUCT_CONFIG_PATH.
    """
    catalog = catalog_as_dict()
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, 'w', encoding='utf-8') as f:
        json.dump(catalog, f, ensure_ascii=False, indent=2)

    product_types = sum(len(types) for types in catalog.values())
    logger.info(f"Exported {len(catalog)} categories with {product_types} product types to {output}")
    return product_types

def main():
    parser = argparse.ArgumentParser(description="Export the product catalog to JSON")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("product-config.json"),
        help="Target file"
    )
    args = parser.parse_args()
    export_product_config(args.output)

if __name__ == "__main__":
    main()

import argparse
import json
import logging
from pathlib import Path

import pandas as pd

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("parse_excel")

def sheet_to_rows(path: Path, sheet=0):
    """
    Read one sheet as a list of rows. The header row is kept as the first row
    and empty cells become empty strings.
    """
    frame = pd.read_excel(path, sheet_name=sheet, header=None, dtype=object)
    frame = frame.fillna('')
    return frame.values.tolist()

def main():
    parser = argparse.ArgumentParser(description="Convert the first sheet of a workbook to JSON")
    parser.add_argument("workbook", type=Path, help="Excel file (.xlsx)")
    parser.add_argument("--output", type=Path, default=Path("excel-data.json"), help="Target JSON file")
    parser.add_argument("--sheet", default=0, help="Sheet name or index")
    args = parser.parse_args()

    sheet = int(args.sheet) if str(args.sheet).isdigit() else args.sheet
    rows = sheet_to_rows(args.workbook, sheet)

    with open(args.output, 'w', encoding='utf-8') as f:
        json.dump(rows, f, ensure_ascii=False, indent=2, default=str)

    logger.info(f"Excel parsed successfully, {len(rows)} rows")
    if rows:
        logger.info(f"First row (headers): {rows[0]}")
    logger.info(f"Data saved to {args.output}")

if __name__ == "__main__":
    main()

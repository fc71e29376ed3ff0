#!/usr/bin/env python3
"""
Build WHO reference tables for the who_growth package.

Downloads the WHO LMS percentile CSVs hosted by the CDC, derives the seven SD
columns from L, M and S (rounded to one decimal, the precision of the WHO
z-score tables) and writes one CSV per (indicator, sex, bracket) in the package
layout:

    <Week|Month|Length|Height>,L,M,S,SD3neg,SD2neg,SD1neg,SD0,SD1,SD2,SD3

The CDC-hosted files cover birth to 24 months, so they provide the 0-2 year
length-for-age and weight-for-length tables. Tables for other brackets (e.g.
weight-for-age 0-5 years, height-for-age and weight-for-height 2-5 years) are
taken from local copies of the WHO z-score tables with --table NAME=PATH.
Month-keyed tables are cut to their bracket and must cover it completely.

Every table is validated before it is written and the SHA-256 of each source
is recorded in manifest.json next to the tables.
"""

import argparse
import hashlib
import io
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from tqdm import tqdm
from urllib3.util.retry import Retry

from who_growth.brackets import BRACKET_SCHEDULES, AgeBracket, AgeUnit
from who_growth.config import AXIS_COLUMNS, LMS_COLUMNS, SD_COLUMNS, SD_DECIMALS
from who_growth.lms import measurement_from_zscore
from who_growth.reference import dataset_from_frame
from who_growth.types import Indicator, Sex

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path(__file__).parent.parent / "src" / "who_growth" / "data"
MANIFEST_NAME = "manifest.json"

SD_ZSCORES = [-3, -2, -1, 0, 1, 2, 3]

# Table name -> (URL, independent variable column)
DATA_SOURCES: Dict[str, Tuple[str, str]] = {
    "lhfa_boys_0_2_years": (
        "https://ftp.cdc.gov/pub/Health_Statistics/NCHS/growthcharts/WHO-Boys-Length-for-age-Percentiles.csv",
        "Month",
    ),
    "lhfa_girls_0_2_years": (
        "https://ftp.cdc.gov/pub/Health_Statistics/NCHS/growthcharts/WHO-Girls-Length-for-age-Percentiles.csv",
        "Month",
    ),
    "wfl_boys_0_2_years": (
        "https://ftp.cdc.gov/pub/Health_Statistics/NCHS/growthcharts/WHO-Boys-Weight-for-length-Percentiles.csv",
        "Length",
    ),
    "wfl_girls_0_2_years": (
        "https://ftp.cdc.gov/pub/Health_Statistics/NCHS/growthcharts/WHO-Girls-Weight-for-length-Percentiles.csv",
        "Length",
    ),
}


def download_csv(url: str, timeout: int = 30) -> str:
    """Download CSV content from URL with retries."""
    try:
        retry_strategy = Retry(
            total=3,
            status_forcelist=[429, 500, 502, 503, 504],
            backoff_factor=2,  # Exponential backoff
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)

        with requests.Session() as session:
            session.mount("https://", adapter)
            session.mount("http://", adapter)
            response = session.get(url, timeout=timeout, verify=True)
            response.raise_for_status()
            return response.text
    except Exception as e:
        logger.error(f"Failed to download {url}: {e}")
        raise


def compute_sha256(content: str) -> str:
    """Compute SHA-256 hash of content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def table_brackets() -> Dict[str, Tuple[Indicator, Sex, AgeBracket]]:
    """Every package table name with the indicator, sex and bracket it serves."""
    tables = {}
    for indicator, schedule in BRACKET_SCHEDULES.items():
        for bracket in schedule.brackets:
            for sex in Sex:
                tables[bracket.table_name(sex)] = (indicator, sex, bracket)
    return tables


def month_range(indicator: Indicator, bracket: AgeBracket) -> Tuple[int, int]:
    """Inclusive month range a month-keyed bracket covers."""
    lower = 0
    for candidate in BRACKET_SCHEDULES[indicator].brackets:
        if candidate.name == bracket.name:
            break
        if candidate.unit is AgeUnit.MONTHS:
            lower = candidate.max_age
    return lower, bracket.max_age


def clean_header(frame: pd.DataFrame) -> pd.DataFrame:
    """Strip BOMs and whitespace from column names."""
    return frame.rename(columns=lambda c: str(c).replace("\ufeff", "").strip())


def parse_lms_csv(content: str, x_col: str, name: str) -> pd.DataFrame:
    """Parse a WHO LMS percentile CSV, keeping only the axis and L, M, S columns."""
    frame = clean_header(pd.read_csv(io.StringIO(content)))
    essential_cols = [x_col] + LMS_COLUMNS
    missing = [col for col in essential_cols if col not in frame.columns]
    if missing:
        raise ValueError(f"{name}: essential columns {missing} not found in header")
    return frame[essential_cols].apply(pd.to_numeric, errors="coerce").dropna(how="all")


def add_sd_columns(frame: pd.DataFrame) -> pd.DataFrame:
    """Derive SD3neg..SD3 from L, M, S, rounded to the WHO table precision."""
    frame = frame.copy()
    L = frame["L"].to_numpy(dtype=np.float64)
    M = frame["M"].to_numpy(dtype=np.float64)
    S = frame["S"].to_numpy(dtype=np.float64)
    for column, z in zip(SD_COLUMNS, SD_ZSCORES):
        frame[column] = np.round(measurement_from_zscore(L, M, S, float(z)), SD_DECIMALS)
    return frame


def cut_to_bracket(frame: pd.DataFrame, name: str) -> pd.DataFrame:
    """
    Keep the rows of a month-keyed table that fall inside its bracket.

    Raises:
        ValueError: If the table does not cover the whole bracket
    """
    indicator, _, bracket = table_brackets()[name]
    if "Month" not in frame.columns:
        return frame

    lower, upper = month_range(indicator, bracket)
    months = frame["Month"]
    if months.empty or months.min() > lower or months.max() < upper:
        raise ValueError(
            f"{name}: table covers months {months.min()}-{months.max()}, "
            f"bracket '{bracket.name}' needs {lower}-{upper}"
        )
    return frame[(months >= lower) & (months <= upper)].reset_index(drop=True)


def validate_table(frame: pd.DataFrame, name: str) -> None:
    """Validate a table with the package loader's checks (raises ReferenceDataError)."""
    indicator, sex, bracket = table_brackets()[name]
    dataset = dataset_from_frame(frame, name, indicator, sex, axis=bracket.axis)
    if dataset.is_empty:
        raise ValueError(f"{name}: no rows")


def write_table(frame: pd.DataFrame, name: str, output_dir: Path) -> Path:
    x_col = next(col for col in frame.columns if col in AXIS_COLUMNS)
    output_path = output_dir / f"{name}.csv"
    frame[[x_col] + LMS_COLUMNS + SD_COLUMNS].to_csv(output_path, index=False)
    logger.info(f"Saved {len(frame)} rows to {output_path}")
    return output_path


def build_downloaded_table(name: str, url: str, x_col: str) -> Tuple[pd.DataFrame, str]:
    content = download_csv(url)
    frame = parse_lms_csv(content, x_col, name)
    frame = add_sd_columns(frame)
    frame = cut_to_bracket(frame, name)
    validate_table(frame, name)
    return frame, compute_sha256(content)


def build_local_table(name: str, path: Path) -> Tuple[pd.DataFrame, str]:
    """
    Read a local WHO z-score table (comma or tab separated).

    The WHO files already carry SD3neg..SD3; a table with only L, M and S gets
    the SD columns derived. An extra 'SD' column is ignored.
    """
    content = Path(path).read_text(encoding="utf-8")
    frame = clean_header(pd.read_csv(io.StringIO(content), sep=None, engine="python"))
    if not all(col in frame.columns for col in SD_COLUMNS):
        frame = add_sd_columns(frame)
    frame = cut_to_bracket(frame, name)
    validate_table(frame, name)
    return frame, compute_sha256(content)


def parse_table_args(values: Optional[List[str]]) -> Dict[str, Path]:
    """Parse repeated NAME=PATH arguments."""
    known = table_brackets()
    tables = {}
    for value in values or []:
        name, sep, path = value.partition("=")
        if not sep or not path:
            raise ValueError(f"Expected NAME=PATH, got '{value}'")
        if name not in known:
            raise ValueError(f"Unknown table '{name}', expected one of {sorted(known)}")
        tables[name] = Path(path)
    return tables


def load_manifest(output_dir: Path) -> Dict[str, Dict[str, str]]:
    manifest_path = output_dir / MANIFEST_NAME
    if not manifest_path.exists():
        return {}
    return json.loads(manifest_path.read_text(encoding="utf-8"))


def save_manifest(manifest: Dict[str, Dict[str, str]], output_dir: Path) -> None:
    manifest_path = output_dir / MANIFEST_NAME
    manifest_path.write_text(json.dumps(manifest, indent=2, sort_keys=True), encoding="utf-8")
    logger.info(f"Recorded {len(manifest)} sources in {manifest_path}")


def main(
    strict_mode: bool = False,
    output_dir: Optional[Path] = None,
    local_tables: Optional[Dict[str, Path]] = None,
    download: bool = True,
) -> Dict[str, Path]:
    """Main function to build all tables. Returns the written paths by table name."""
    output_dir = Path(output_dir) if output_dir is not None else DEFAULT_OUTPUT_DIR
    output_dir.mkdir(parents=True, exist_ok=True)
    local_tables = local_tables or {}

    jobs = []
    if download:
        jobs += [(name, "download", source) for name, source in DATA_SOURCES.items()]
    jobs += [(name, "local", path) for name, path in local_tables.items()]

    manifest = load_manifest(output_dir)
    written = {}
    failed_sources = []

    with tqdm(total=len(jobs), desc="Building tables") as pbar:
        for name, kind, source in jobs:
            pbar.set_postfix({"table": name})
            pbar.update(1)
            try:
                if kind == "download":
                    url, x_col = source
                    frame, hash_value = build_downloaded_table(name, url, x_col)
                    origin = url
                else:
                    frame, hash_value = build_local_table(name, source)
                    origin = str(source)

                written[name] = write_table(frame, name, output_dir)
                manifest[name] = {
                    "source": origin,
                    "hash": hash_value,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            except Exception as e:
                failed_sources.append(name)
                logger.error(f"Failed to build {name}: {e}")
                continue

    if strict_mode and failed_sources:
        raise RuntimeError(
            f"Strict mode failed: Unable to build tables: {', '.join(failed_sources)}"
        )

    save_manifest(manifest, output_dir)

    missing = sorted(set(table_brackets()) - {p.stem for p in output_dir.glob("*.csv")})
    if missing:
        logger.info(f"Tables still missing: {', '.join(missing)}")

    return written


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Build WHO growth standard reference tables for who_growth."
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help="Directory the tables are written to (default: package data)",
    )
    parser.add_argument(
        "--table",
        action="append",
        metavar="NAME=PATH",
        help="Local WHO z-score table for a package table, e.g. wfa_boys_0_5_years=wfa_boys.txt",
    )
    parser.add_argument(
        "--no-download",
        action="store_true",
        help="Only process --table files",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Strict mode: exit on any error instead of continuing with warnings",
    )
    args = parser.parse_args()

    main(
        strict_mode=args.strict,
        output_dir=args.output_dir,
        local_tables=parse_table_args(args.table),
        download=not args.no_download,
    )

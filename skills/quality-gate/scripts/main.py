"""CLI entrypoint for quality-gate skill."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import UTC, datetime
from pathlib import Path

import yaml
from dotenv import load_dotenv

if __package__ in {None, ""}:
    _script_dir = Path(__file__).resolve().parent
    for _path in (_script_dir, _script_dir.parents[2]):
        if str(_path) not in sys.path:
            sys.path.insert(0, str(_path))
    from validators import GateResults, run_all_gates
else:
    from .validators import GateResults, run_all_gates

load_dotenv()


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _default_data_dir() -> Path:
    configured = os.environ.get("DATA_PATH")
    root = Path(configured).expanduser() if configured else _repo_root() / "data"
    if not root.is_absolute():
        root = (_repo_root() / root).resolve()
    return root / "parsed"


def load_gates(gates_path: Path) -> list[dict]:
    """Read the gate list from a YAML file with a top-level ``gates`` key."""
    with gates_path.open("r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise ValueError(f"gates file must be a mapping: {gates_path}")

    gates = config.get("gates") or []
    for gate in gates:
        if not isinstance(gate, dict) or "id" not in gate or "type" not in gate:
            raise ValueError(f"every gate needs an id and a type: {gate!r}")
    return gates


def build_report(results: GateResults, gates_path: Path, data_dir: Path) -> dict:
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "gates_file": str(gates_path),
        "data_dir": str(data_dir),
        "overall_pass": results.overall_pass,
        "gates": [gate.model_dump() for gate in results.gates],
    }


def main(argv: list[str] | None = None) -> int:
    """Run quality gate CLI."""
    parser = argparse.ArgumentParser(
        description="Validate parsed statement JSON files against acceptance gates."
    )
    parser.add_argument(
        "--gates",
        type=str,
        required=True,
        help="Path to gates definition YAML file.",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory of statement-parser JSON output (default: <DATA_PATH>/parsed).",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output path for gate_results.json (default: stdout).",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    gates_path = Path(args.gates)
    data_dir = Path(args.data_dir) if args.data_dir else _default_data_dir()

    if not gates_path.exists():
        print(f"Error: gates file not found: {gates_path}", file=sys.stderr)
        return 1
    if not data_dir.is_dir():
        print(f"Error: data directory not found: {data_dir}", file=sys.stderr)
        return 1

    try:
        gates_list = load_gates(gates_path)
    except (ValueError, yaml.YAMLError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if not gates_list:
        print("Error: no gates defined in config", file=sys.stderr)
        return 1

    results = run_all_gates(gates_list, data_dir)
    output_json = json.dumps(build_report(results, gates_path, data_dir), ensure_ascii=False, indent=2)

    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8") as f:
            f.write(output_json)
        for gate in results.gates:
            print(f"  {gate.id} {gate.gate_type}: {'PASS' if gate.passed else 'FAIL'}")
        print(f"Results written to {out_path}")
        print(f"Overall: {'PASS' if results.overall_pass else 'FAIL'}")
    else:
        print(output_json)

    return 0 if results.overall_pass else 1


if __name__ == "__main__":
    sys.exit(main())

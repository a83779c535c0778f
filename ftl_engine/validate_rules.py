# ftl_engine/validate_rules.py
# Validate every .json in a rules folder (default: ftl_engine/rules) and print errors
# with file/line/col. Run:
#   python -m ftl_engine.validate_rules [rules_folder]

import json
from pathlib import Path
import sys

from pydantic import ValidationError

from .config import DEFAULT_RULES_DIR
from .load_rules import LOGIC_MODELS, RuleSpec, _iter_rule_objects_from_raw


def _print_context(txt: str, lineno: int):
    # show a small snippet around the error location
    lines = txt.splitlines()
    ln = lineno - 1
    start = max(0, ln - 2)
    end = min(len(lines), ln + 2)
    print("---- context ----")
    for i in range(start, end):
        marker = ">>" if i == ln else "  "
        print(f"{marker} {i + 1:4d}: {lines[i]}")
    print("-----------------")


def validate_json_file(p: Path) -> bool:
    try:
        txt = p.read_text(encoding="utf-8")
    except OSError as e:
        print(f"{p.name}: ERROR reading file: {e}")
        return False
    try:
        parsed = json.loads(txt)
    except json.JSONDecodeError as e:
        print(f"{p.name}: JSON parse error: {e.msg} (line {e.lineno}, col {e.colno})")
        _print_context(txt, e.lineno)
        return False

    good = True
    for idx, raw in enumerate(_iter_rule_objects_from_raw(parsed)):
        try:
            rule = RuleSpec.model_validate(raw)
            model = LOGIC_MODELS.get(rule.logic["type"])
            if model is None:
                print(f"{p.name}: rule #{idx} ({rule.id}) has unknown logic.type {rule.logic['type']!r}")
            else:
                model.model_validate(rule.logic)
        except ValidationError as e:
            good = False
            print(f"{p.name}: rule #{idx} failed validation:")
            for err in e.errors():
                loc = ".".join(str(x) for x in err.get("loc", ()))
                print(f"    {loc or '<root>'}: {err.get('msg')}")
    if good:
        print(f"{p.name}: OK")
    return good


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    rules_dir = Path(argv[0]) if argv else DEFAULT_RULES_DIR
    if not rules_dir.exists():
        print("Rules folder not found:", rules_dir.resolve())
        return 1
    files = sorted(rules_dir.glob("*.json"))
    if not files:
        print("No .json files found in:", rules_dir.resolve())
        return 0
    ok_count = 0
    bad_count = 0
    for f in files:
        if validate_json_file(f):
            ok_count += 1
        else:
            bad_count += 1
    print(f"\nSummary: {ok_count} OK, {bad_count} INVALID ({len(files)} files checked)")
    return 2 if bad_count else 0


if __name__ == "__main__":
    sys.exit(main())

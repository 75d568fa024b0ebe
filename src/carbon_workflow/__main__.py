from __future__ import annotations

from carbon_workflow.main import main

if __name__ == "__main__":
    raise SystemExit(main())

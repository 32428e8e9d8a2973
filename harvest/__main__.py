from .collect import _cli

raise SystemExit(_cli())

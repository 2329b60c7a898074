"""
Print the row-level policy table.

One line per (table, action, rule) with the roles the rule can admit
and, for column-restricted updates, the writable columns.  Use
``--json`` for machine-readable output when diffing policy versions.
"""
import json

from django.core.management.base import BaseCommand

from referrals.policy import engine


class Command(BaseCommand):
    help = "Print the versioned row-level policy table."

    def add_arguments(self, parser):
        parser.add_argument("--json", action="store_true", help="emit JSON instead of a table")
        parser.add_argument("--entity", help="only show rules for this table")

    def handle(self, *args, **opts):
        rows = engine.matrix()
        if opts.get("entity"):
            rows = [r for r in rows if r["entity"] == opts["entity"]]
        if opts.get("json"):
            self.stdout.write(json.dumps({"version": engine.version, "rules": rows}, indent=2))
            return
        self.stdout.write(f"policy version {engine.version}")
        for r in rows:
            line = f"{r['entity']:<20} {r['action']:<7} {r['rule']:<46} {','.join(r['roles'])}"
            if r["columns"]:
                line += f"  columns={','.join(r['columns'])}"
            self.stdout.write(line)

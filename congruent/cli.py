#!/usr/bin/env python3
"""
CONGRUENT Command-Line Interface

Provides an interactive session, script execution, and pipe/filter modes.

Usage:
    congruent                                   # Start session
    congruent script.cong                       # Run script
    congruent -p order -e "(le (add a c) (add b d))"
    congruent -r rules.rules -t "(add ?_ c)" -e "(le (add a c) (add b c))"
    congruent -p order -H "(le a b)" -e "(le (add a c) (add b c))"   # substitute mode
    echo "(le (add a c) (add b d))" | congruent -p order             # Filter mode

Script Format (.cong files):
    #!/usr/bin/env congruent
    :library order
    :load extra.rules

    @my-rule: (le ?a ?b) => (le (f ?a) (f ?b))

    :hyp h (le x y)
    (le (f x) (f y))

Session Commands:
    :help              Show help
    :load FILE         Load rules from file
    :rules             List loaded rules
    :clear             Clear all rules
    :library NAME      Load a stock rule set (order, logic, full)
    :hyp [NAME] TERM   Add a hypothesis
    :hyps              List hypotheses (:hyps clear to drop them)
    :template T|off    Set the template for following goals
    :with NAMES        Set binder names for following goals
    :depth N|off       Set the depth budget
    :mode reduce|substitute
    :rel               Show relation properties
    :quit              Exit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from . import __version__
from .engine import CongruenceEngine, load_rules_from_dsl
from .exceptions import CongruenceError
from .library import LIBRARIES
from .terms import TermType, parse_sexpr, format_sexpr

logger = logging.getLogger(__name__)

# Try to import readline for better session experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

MODES = ("reduce", "substitute")


class CongruentCompleter:
    """Tab completer for the CONGRUENT session."""

    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":load", ":rules", ":clear", ":library",
        ":hyp", ":hyps", ":template", ":with", ":depth", ":mode", ":rel",
    ]

    def __init__(self, session: 'CongruentSession'):
        self.session = session
        self.matches: List[str] = []

    def complete(self, text: str, state: int) -> Optional[str]:
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)
        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> list:
        line = line.lstrip()
        if line.startswith(":library "):
            return [name for name in sorted(LIBRARIES) if name.startswith(text)]
        if line.startswith(":mode "):
            return [m for m in MODES if m.startswith(text)]
        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]
        return []


def count_parens(text: str) -> int:
    """Count unbalanced parentheses. Returns >0 if more open than close."""
    depth = 0
    in_string = False
    for c in text:
        if c == '"':
            in_string = not in_string
        elif in_string:
            continue
        elif c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
    return depth


class CongruentSession:
    """Interactive session: rule definitions, commands and goals."""

    def __init__(self, engine: Optional[CongruenceEngine] = None):
        self.engine = engine or CongruenceEngine()
        self.hypotheses: List[Tuple[str, TermType]] = []
        self.template: Optional[TermType] = None
        self.names: List[str] = []
        self.depth: Optional[int] = None
        self.mode = "reduce"
        self.group: Optional[str] = None
        self.running = True
        self.multi_line_buffer = ""
        self.history_file = Path.home() / ".congruent_history"

    def setup_readline(self):
        """Set up readline history and completion."""
        if not HAS_READLINE:
            return
        try:
            readline.read_history_file(self.history_file)
        except FileNotFoundError:
            pass
        readline.set_history_length(1000)
        self.completer = CongruentCompleter(self)
        readline.set_completer(self.completer.complete)
        readline.parse_and_bind("tab: complete")
        readline.set_completer_delims(" \t\n")

    def save_history(self):
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError:
                pass

    # ------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------

    def add_hypothesis(self, text: str) -> str:
        text = text.strip()
        if text.startswith("("):
            name = f"h{len(self.hypotheses) + 1}"
        else:
            parts = text.split(None, 1)
            if len(parts) != 2:
                return "Usage: :hyp [NAME] TERM"
            name, text = parts
        term = parse_sexpr(text)
        self.hypotheses.append((name, term))
        return f"{name} : {format_sexpr(term)}"

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a session command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILENAME"
            before = len(self.engine)
            try:
                self.engine.load_file(Path(arg))
            except (OSError, ValueError, CongruenceError) as e:
                return f"Error loading {arg}: {e}"
            return f"Loaded {len(self.engine) - before} rules from {arg}"

        elif cmd == "rules":
            rules = self.engine.list_rules()
            if not rules:
                return "No rules loaded"
            return "\n".join(rules)

        elif cmd == "clear":
            self.engine = CongruenceEngine(self.engine.config)
            return "Cleared all rules"

        elif cmd == "library":
            if arg not in LIBRARIES:
                return f"Usage: :library NAME\nAvailable: {', '.join(sorted(LIBRARIES))}"
            before = len(self.engine)
            self.engine.with_library(arg)
            return f"Loaded {len(self.engine) - before} rules from library {arg}"

        elif cmd == "hyp":
            if not arg:
                return "Usage: :hyp [NAME] TERM"
            try:
                return self.add_hypothesis(arg)
            except ValueError as e:
                return f"Error: {e}"

        elif cmd == "hyps":
            if arg == "clear":
                self.hypotheses = []
                return "Cleared hypotheses"
            if not self.hypotheses:
                return "No hypotheses"
            return "\n".join(f"{name} : {format_sexpr(term)}" for name, term in self.hypotheses)

        elif cmd == "template":
            if not arg or arg == "off":
                self.template = None
                return "Template cleared"
            try:
                self.template = parse_sexpr(arg)
            except ValueError as e:
                return f"Error: {e}"
            return f"Template set to: {format_sexpr(self.template)}"

        elif cmd == "with":
            self.names = arg.split()
            return f"Binder names: {' '.join(self.names)}" if self.names else "Binder names cleared"

        elif cmd == "depth":
            if not arg or arg == "off":
                self.depth = None
                return "Depth budget cleared"
            try:
                self.depth = int(arg)
            except ValueError:
                return "Usage: :depth N|off"
            return f"Depth set to: {self.depth}"

        elif cmd == "mode":
            if arg not in MODES:
                return "Unknown mode. Options: reduce, substitute"
            self.mode = arg
            return f"Mode set to: {self.mode}"

        elif cmd == "rel":
            config = self.engine.config
            return "\n".join([
                f"reflexive:  {' '.join(sorted(config.reflexive_relations))}",
                f"symmetric:  {' '.join(sorted(config.symmetric_relations))}",
                f"transitive: {' '.join(sorted(config.transitive_relations))}",
                "weakenings: " + " ".join(f"{s}->{w}" for s, w in
                                          sorted(config.strict_weakenings.items())),
            ])

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        return """CONGRUENT Session Commands:
  :help              Show this help
  :load FILE         Load rules from file (.rules or .json)
  :rules             List all loaded rules
  :clear             Clear all rules
  :library NAME      Load a stock rule set (order, logic, full)
  :hyp [NAME] TERM   Add a hypothesis
  :hyps              List hypotheses (:hyps clear to drop them)
  :template T|off    Template for following goals, ?_ marks holes
  :with NAMES        Binder names for following goals
  :depth N|off       Depth budget
  :mode reduce|substitute
  :rel               Show relation properties
  :quit              Exit

Syntax:
  @name: ANT ... => (rel (f ?a) (f ?b))        Define a rule
  @name[priority] "description": ... => ...  Rule with priority
  [groupname]                                Start a rule group
  (rel lhs rhs)                              Decompose a goal
"""

    # ------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------

    def add_rules(self, line: str) -> str:
        if self.group:
            line = f"[{self.group}]\n{line}"
        try:
            parsed = load_rules_from_dsl(line)
        except CongruenceError as e:
            return f"Error: {e}"
        if not parsed:
            return "Error: failed to parse rule"
        for metadata, (antecedents, conclusion) in parsed:
            try:
                self.engine.register(metadata, antecedents, conclusion)
            except CongruenceError as e:
                return f"Error: {e}"
        return f"Added {len(parsed)} rule(s)"

    def solve(self, goal: TermType) -> str:
        if self.mode == "substitute":
            if self.template is not None or self.names:
                return ("Error: substitute mode takes no template or binder names "
                        "(:template off, :with)")
            result = self.engine.substitute(goal, [term for _, term in self.hypotheses],
                                            depth=self.depth)
        else:
            result = self.engine.reduce(goal, template=self.template, names=self.names,
                                        depth=self.depth, hypotheses=self.hypotheses,
                                        require_progress=True)
        return result.format()

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        if not line or line.startswith("#"):
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        if "=>" in line:
            return self.add_rules(line)

        if line.startswith("[") and line.endswith("]"):
            self.group = line[1:-1].strip() or None
            return f"Group: {self.group}"

        try:
            goal = parse_sexpr(line)
            if goal is None:
                return None
            return self.solve(goal)
        except (ValueError, CongruenceError) as e:
            return f"Error: {e}"

    def run(self):
        """Run the session loop."""
        self.setup_readline()
        print("CONGRUENT - Congruence reasoning over relational goals")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                prompt = "...... " if self.multi_line_buffer else "congruent> "
                line = input(prompt)

                if self.multi_line_buffer:
                    self.multi_line_buffer += "\n" + line
                else:
                    self.multi_line_buffer = line

                paren_count = count_parens(self.multi_line_buffer)
                if paren_count > 0:
                    continue
                elif paren_count < 0:
                    print("Error: Unbalanced parentheses (too many closing)")
                    self.multi_line_buffer = ""
                    continue

                complete_input = self.multi_line_buffer
                self.multi_line_buffer = ""

                result = self.process_line(complete_input)
                if result:
                    print(result)

            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                if self.multi_line_buffer:
                    print("\nInput cancelled")
                    self.multi_line_buffer = ""
                else:
                    print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs congruent scripts."""

    def __init__(self, session: Optional[CongruentSession] = None):
        self.session = session or CongruentSession()

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Args:
            path: Path to the script
            quiet: If True, don't print goal results

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        for lineno, line in enumerate(lines, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            result = self.session.process_line(line)
            if not result:
                continue
            if result.startswith("Error") or result.startswith("Unknown") or "Error loading" in result:
                print(f"{path}:{lineno}: {result}", file=sys.stderr)
                return 1
            # Command confirmations and rule additions are not echoed in script mode
            if line.startswith(":") or "=>" in line or line.startswith("["):
                continue
            if not quiet:
                print(result)

        return 0

    def run_expression(self, expr_str: str) -> int:
        """
        Solve a single goal.

        Returns:
            Exit code (0 for success)
        """
        result = self.session.process_line(expr_str)
        if result:
            print(result)
            if result.startswith("Error"):
                return 1
        return 0

    def run_stdin(self) -> int:
        """
        Read goals from stdin and solve them.

        Returns:
            Exit code (0 for success)
        """
        status = 0
        for line in sys.stdin:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            result = self.session.process_line(line)
            if result:
                print(result)
                if result.startswith("Error"):
                    status = 1
        return status


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="congruent",
        description="CONGRUENT - Congruence reasoning over relational goals",
        epilog="Examples:\n"
               "  congruent                                        Start session\n"
               "  congruent script.cong                            Run script\n"
               "  congruent -p order -e '(le (add a c) (add b d))'  Reduce a goal\n"
               "  congruent -p order -H '(le a b)' -e '(le (add a c) (add b c))'\n"
               "  echo '(le (neg a) (neg b))' | congruent -p order  Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run (.cong)"
    )

    parser.add_argument(
        "-r", "--rules",
        action="append",
        default=[],
        help="Load rules from file (can be specified multiple times)"
    )

    parser.add_argument(
        "-p", "--library",
        action="append",
        default=[],
        choices=sorted(LIBRARIES),
        help="Load a stock rule set (can be specified multiple times)"
    )

    parser.add_argument(
        "-e", "--goal",
        help="Solve a single goal"
    )

    parser.add_argument(
        "-t", "--template",
        help="Template for the goal; ?_ marks where to stop"
    )

    parser.add_argument(
        "-w", "--with",
        dest="names",
        action="append",
        default=[],
        help="Name for an introduced binder (repeatable, in order)"
    )

    parser.add_argument(
        "-H", "--hyp",
        action="append",
        default=[],
        help="Hypothesis for substitute mode (repeatable)"
    )

    parser.add_argument(
        "-d", "--depth",
        type=int,
        help="Depth budget"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (suppress non-essential output)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log rule registration (-v) and search steps (-vv)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)
    if args.hyp and (args.template or args.names):
        parser.error("-t and -w do not apply in substitute mode (-H)")

    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    runner = ScriptRunner()
    session = runner.session

    for name in args.library:
        session.engine.with_library(name)

    for rules_file in args.rules:
        try:
            session.engine.load_file(Path(rules_file))
            if not args.quiet:
                print(f"Loaded rules from {rules_file}", file=sys.stderr)
        except (OSError, ValueError, CongruenceError) as e:
            print(f"Error loading {rules_file}: {e}", file=sys.stderr)
            sys.exit(1)

    try:
        if args.template:
            session.template = parse_sexpr(args.template)
        for hyp in args.hyp:
            session.add_hypothesis(hyp)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    session.names = list(args.names)
    session.depth = args.depth
    if args.hyp:
        session.mode = "substitute"

    if args.script:
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

    elif args.goal:
        sys.exit(runner.run_expression(args.goal))

    elif not sys.stdin.isatty():
        # Pipe/filter mode (stdin is not a terminal)
        sys.exit(runner.run_stdin())

    else:
        session.run()


if __name__ == "__main__":
    main()

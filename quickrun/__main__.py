"""Entry point for `python -m quickrun`."""

import sys

# flag -> (option key, takes a value)
_FLAGS = {
    "-config": ("config", True),
    "-query": ("query", True),
    "-shell": ("shell", True),
    "-print-only": ("print_only", False),
    "-refresh-cache": ("refresh_cache", False),
    "-no-icons": ("no_icons", False),
}


def _usage():
    flags = " ".join(f"[{f} X]" if takes else f"[{f}]"
                     for f, (_, takes) in _FLAGS.items())
    print(f"usage: python -m quickrun {flags}", file=sys.stderr)
    print("       python -m quickrun -parse TEXT", file=sys.stderr)
    sys.exit(2)


def parse_argv(argv):
    options = {}
    i = 0
    while i < len(argv):
        flag = argv[i]
        if flag not in _FLAGS:
            _usage()
        key, takes_value = _FLAGS[flag]
        if takes_value:
            if i + 1 >= len(argv):
                _usage()
            options[key] = argv[i + 1]
            i += 2
        else:
            options[key] = True
            i += 1
    return options


def _parse_cmd(text):
    """Print which addon claims text, in test_cases.txt format."""
    from quickrun.addons.dispatch import first_parse
    from quickrun.config import parse_config

    config = parse_config({})
    p = first_parse(text, config)

    print(f"> {text}")
    if p is None:
        print("module: none")
        return

    print(f"module: {p.addon}")
    print(f"command: {p.command}")
    for key, val in p.args.items():
        if hasattr(val, "keyword"):
            # addon spec: print its name
            print(f"{key}.name: {val.name}")
        elif isinstance(val, list):
            print(f"{key}: {','.join(val) if val else 'empty'}")
        elif isinstance(val, bool):
            print(f"{key}: {'true' if val else 'false'}")
        elif val is None:
            print(f"{key}: none")
        else:
            print(f"{key}: {val}")


def run(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) >= 2 and argv[0] == "-parse":
        _parse_cmd(" ".join(argv[1:]))
    else:
        from quickrun.main import main
        main(parse_argv(argv))


if __name__ == "__main__" or not sys.argv[0]:
    run()

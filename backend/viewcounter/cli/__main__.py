# backend/viewcounter/cli/__main__.py
from __future__ import annotations

import argparse
import sys

from viewcounter.config import settings
from viewcounter.domain.glyphs import parse_order, resolve_order
from viewcounter.domain.render import CounterRenderer, RenderConfig
from viewcounter.services.asset_cache import build_asset_cache
from viewcounter.services.counter_store import build_counter_store


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="python -m viewcounter.cli")
    sub = p.add_subparsers(dest="cmd", required=True)

    peek = sub.add_parser("peek", help="print a counter without changing it")
    peek.add_argument("name")

    inc = sub.add_parser("inc", help="increment a counter and print the new value")
    inc.add_argument("name")

    render = sub.add_parser("render", help="write a badge SVG to stdout")
    render.add_argument("name")
    render.add_argument("--inc", action="store_true", help="increment before rendering")
    render.add_argument("--padding", type=int, default=7)
    render.add_argument("--offset", type=int, default=0)
    render.add_argument("--scale", type=float, default=1.0)
    render.add_argument("--align", default="top", choices=["top", "center", "bottom"])
    render.add_argument("--darkmode", default="auto", choices=["0", "1", "auto"])
    render.add_argument("--smooth", action="store_true", help="disable pixelated rendering")
    render.add_argument("--prefix", default="")
    render.add_argument("--order", default="", help="comma separated glyph keys")
    render.add_argument("--num", type=int, default=0)

    args = p.parse_args(argv)

    config: RenderConfig | None = None
    if args.cmd == "render":
        # reject bad render options before the counter is touched
        keys = parse_order(args.order)
        try:
            config = RenderConfig(
                padding=args.padding,
                offset=args.offset,
                scale=args.scale,
                align=args.align,
                darkmode=args.darkmode,
                pixelated=not args.smooth,
                prefix=args.prefix,
                character_order=resolve_order(keys) if keys else (),
                num=args.num,
            )
        except ValueError as e:
            p.error(str(e))

    with build_counter_store(settings) as store:
        if args.cmd == "peek":
            print(store.peek(args.name))
            return 0

        if args.cmd == "inc":
            print(store.increment_and_get(args.name))
            return 0

        value = store.increment_and_get(args.name) if args.inc else store.peek(args.name)

    renderer = CounterRenderer(build_asset_cache(settings))
    sys.stdout.write(renderer.render(value, config))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""
Ljubljana Heightmap Demo -- chuk-mcp-lidar

Plans a small region around central Ljubljana, then fetches the ARSO
LIDAR tiles and writes one float32 heightmap per tile. Requires network
access to gis.arso.gov.si.

Usage:
    python examples/ljubljana_demo.py [output_dir]
"""

import asyncio
import sys

from tool_runner import ToolRunner

# D96/TM kilometre grid around Ljubljana city centre
CENTER = [462, 101]
RADIUS = 1
BLOCKS = [35, 36, 37]


async def main() -> None:
    output_dir = sys.argv[1] if len(sys.argv) > 1 else "./ljubljana_heightmaps"
    runner = ToolRunner(output_dir=output_dir)

    print("=" * 60)
    print("chuk-mcp-lidar -- Ljubljana heightmaps")
    print("=" * 60)

    print(await runner.run_text("lidar_describe_source", source="arso_otr"))

    plan = await runner.run("lidar_plan_region", points=[CENTER], radii=[RADIUS])
    print(f"\n{plan['message']}")
    for x, y in plan["tiles"]:
        print(f"  TMR_{x}_{y}")

    print("\nFetching tiles (this may take a few minutes)...")
    text = await runner.run_text(
        "lidar_generate_heightmaps",
        points=[CENTER],
        radii=[RADIUS],
        source_variants=BLOCKS,
        resolution=512,
        origin_policy="smallest",
    )
    print(text)


if __name__ == "__main__":
    asyncio.run(main())

"""Tests for chuk_mcp_lidar.tools.discovery.api.

Covers the four discovery tools: lidar_list_sources, lidar_describe_source,
lidar_status, and lidar_capabilities, in JSON and text modes.
"""

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from chuk_mcp_lidar.constants import ALL_SOURCE_IDS, ORIGIN_POLICIES, TOOL_NAMES, ServerConfig
from chuk_mcp_lidar.tools.discovery.api import register_discovery_tools


@pytest.fixture
def discovery_tools(capture_tools, mock_manager):
    mcp, tools = capture_tools
    register_discovery_tools(mcp, mock_manager)
    return tools


class TestRegistration:
    def test_registers_four_tools(self, discovery_tools):
        assert set(discovery_tools) == {
            "lidar_list_sources",
            "lidar_describe_source",
            "lidar_status",
            "lidar_capabilities",
        }

    def test_all_tools_are_coroutines(self, discovery_tools):
        for name, fn in discovery_tools.items():
            assert asyncio.iscoroutinefunction(fn), f"{name} is not a coroutine"


class TestLidarListSources:
    async def test_json(self, discovery_tools):
        data = json.loads(await discovery_tools["lidar_list_sources"]())
        assert [s["id"] for s in data["sources"]] == ALL_SOURCE_IDS
        assert data["default"] == "arso_otr"
        assert data["message"] == f"{len(ALL_SOURCE_IDS)} LIDAR sources available"

    async def test_text(self, discovery_tools):
        text = await discovery_tools["lidar_list_sources"](output_mode="text")
        assert "arso_otr" in text
        assert "Slovenia" in text

    async def test_error_returns_error_response(self, capture_tools):
        mcp, tools = capture_tools
        manager = MagicMock()
        manager.list_sources.side_effect = RuntimeError("exploded")
        register_discovery_tools(mcp, manager)

        data = json.loads(await tools["lidar_list_sources"]())
        assert data == {"error": "exploded"}


class TestLidarDescribeSource:
    async def test_json(self, discovery_tools):
        data = json.loads(await discovery_tools["lidar_describe_source"](source="arso_otr"))
        assert data["id"] == "arso_otr"
        assert data["horizontal_crs"] == "EPSG:3794"
        assert data["max_tile_dim"] == 800
        assert data["message"].startswith("Source: ")

    async def test_text(self, discovery_tools):
        text = await discovery_tools["lidar_describe_source"](output_mode="text")
        assert "URL: https://gis.arso.gov.si" in text
        assert "indices [0, 800)" in text

    async def test_unknown_source(self, discovery_tools):
        data = json.loads(await discovery_tools["lidar_describe_source"](source="nope"))
        assert "Unknown LIDAR source" in data["error"]

    async def test_unknown_source_text(self, discovery_tools):
        text = await discovery_tools["lidar_describe_source"](source="nope", output_mode="text")
        assert text.startswith("Error: ")


class TestLidarStatus:
    async def test_json(self, discovery_tools, mock_manager):
        data = json.loads(await discovery_tools["lidar_status"]())
        assert data["server"] == ServerConfig.NAME
        assert data["version"] == ServerConfig.VERSION
        assert data["output_dir"] == str(mock_manager.output_dir)
        assert data["fetch_workers"] == 2

    async def test_unconfigured_output_dir(self, capture_tools):
        from chuk_mcp_lidar.core.lidar_manager import LidarManager

        mcp, tools = capture_tools
        register_discovery_tools(mcp, LidarManager())

        data = json.loads(await tools["lidar_status"]())
        assert data["output_dir"] is None

    async def test_text(self, discovery_tools):
        text = await discovery_tools["lidar_status"](output_mode="text")
        assert "Fetch workers: 2" in text


class TestLidarCapabilities:
    async def test_json(self, discovery_tools):
        data = json.loads(await discovery_tools["lidar_capabilities"]())
        assert data["tool_count"] == len(TOOL_NAMES)
        assert data["origin_policies"] == ORIGIN_POLICIES
        assert data["output_format"] == "geotiff-float32"
        assert "lidar_generate_heightmaps" in data["llm_guidance"]

    async def test_text(self, discovery_tools):
        text = await discovery_tools["lidar_capabilities"](output_mode="text")
        assert f"Tools: {len(TOOL_NAMES)}" in text

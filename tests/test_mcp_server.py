"""
MCP 工具测试

直接调用工具实现函数，不经过 stdio 传输。
"""

import json

import pytest

from flowmaster.api import mcp_server


@pytest.mark.asyncio
async def test_extract_call_flow_returns_json(write_source):
    path = write_source("a.ts", """
        function main() {
          helper();
        }
        function helper() {}
    """)

    contents = await mcp_server.extract_call_flow({"file_path": str(path), "function_name": "main"})

    data = json.loads(contents[0].text)
    assert len(data["steps"]) == 5
    assert {"from", "to", "kind"} <= set(data["flows"][0])
    assert data["diagnostics"] == []


@pytest.mark.asyncio
async def test_extract_call_flow_missing_file(tmp_path):
    contents = await mcp_server.extract_call_flow({"file_path": str(tmp_path / "gone.ts")})

    assert "文件不存在" in contents[0].text


@pytest.mark.asyncio
async def test_find_function_at_position(write_source):
    path = write_source("a.ts", """
        function main() {
          helper();
        }
    """)

    found = await mcp_server.find_function_at_position({"file_path": str(path), "line": 1, "character": 2})
    missing = await mcp_server.find_function_at_position({"file_path": str(path), "line": 3, "character": 0})

    assert found[0].text == "main"
    assert "不在任何有名函数内" in missing[0].text


@pytest.mark.asyncio
async def test_list_tools():
    tools = await mcp_server.handle_list_tools()

    assert {tool.name for tool in tools} == {"extract_call_flow", "find_function_at_position"}
    assert tools[0].inputSchema["required"] == ["file_path"]

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Flow Master MCP Server

通过标准输入输出提供调用流提取工具
"""

import asyncio
import json
from pathlib import Path

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool
import mcp.types as types

from ..indexer.call_flow_extractor import CallFlowExtractor
from ..indexer.cursor_context import CursorContextResolver
from ..utils.config import Config
from ..utils.logger import get_logger, setup_logger_from_config

logger = get_logger("mcp")

# 创建 MCP 服务器实例
server = Server("flow-master")

_config = Config()
_extractor = CallFlowExtractor(_config)
# 与提取器共享源码注册表，避免重复解析
_cursor_resolver = CursorContextResolver(_extractor.registry)


@server.list_tools()
async def handle_list_tools() -> list[Tool]:
    """返回可用的工具列表"""
    return [
        Tool(
            name="extract_call_flow",
            description="从 TypeScript/JavaScript 函数、行范围或整个文件提取调用流图（步骤与流）",
            inputSchema={
                "type": "object",
                "properties": {
                    "file_path": {
                        "type": "string",
                        "description": "源文件的绝对路径"
                    },
                    "function_name": {
                        "type": "string",
                        "description": "起始函数名；省略时按行范围或整个文件提取"
                    },
                    "start_line": {
                        "type": "integer",
                        "description": "起始行（1起）",
                        "minimum": 1
                    },
                    "end_line": {
                        "type": "integer",
                        "description": "结束行（1起，含）",
                        "minimum": 1
                    }
                },
                "required": ["file_path"]
            }
        ),
        Tool(
            name="find_function_at_position",
            description="返回光标位置所在的最内层函数名",
            inputSchema={
                "type": "object",
                "properties": {
                    "file_path": {
                        "type": "string",
                        "description": "源文件的绝对路径"
                    },
                    "line": {
                        "type": "integer",
                        "description": "行号（0起）",
                        "minimum": 0
                    },
                    "character": {
                        "type": "integer",
                        "description": "列号（0起）",
                        "minimum": 0
                    }
                },
                "required": ["file_path", "line", "character"]
            }
        ),
    ]


@server.call_tool()
async def handle_call_tool(name: str, arguments: dict) -> list[types.TextContent]:
    """处理工具调用"""
    try:
        if name == "extract_call_flow":
            return await extract_call_flow(arguments)
        elif name == "find_function_at_position":
            return await find_function_at_position(arguments)
        else:
            raise ValueError(f"Unknown tool: {name}")

    except Exception as e:
        logger.exception(f"工具执行错误: {name}")
        return [types.TextContent(
            type="text",
            text=f"❌ 工具执行错误: {str(e)}"
        )]


async def extract_call_flow(args: dict) -> list[types.TextContent]:
    """提取调用流图，结果以 JSON 返回"""
    file_path = args["file_path"]
    if not Path(file_path).exists():
        return [types.TextContent(
            type="text",
            text=f"❌ 错误: 文件不存在: {file_path}"
        )]

    result = await _extractor.extract_with_timeout(
        file_path,
        args.get("function_name"),
        args.get("start_line"),
        args.get("end_line"),
    )
    return [types.TextContent(
        type="text",
        text=json.dumps(result.to_dict(), ensure_ascii=False, indent=2)
    )]


async def find_function_at_position(args: dict) -> list[types.TextContent]:
    """查找光标所在函数"""
    file_path = args["file_path"]
    name = _cursor_resolver.function_name_at(file_path, args["line"], args["character"])
    if name is None:
        text = f"❌ 位置 {args['line']}:{args['character']} 不在任何有名函数内"
    else:
        text = name
    return [types.TextContent(type="text", text=text)]


async def main():
    """主函数 - 启动MCP服务器"""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


def run():
    """命令行入口"""
    setup_logger_from_config(_config)
    asyncio.run(main())


if __name__ == "__main__":
    run()

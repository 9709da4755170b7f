from __future__ import annotations

from toolchat.tool import Tool


def convert_tools(tools: list[Tool]) -> list[dict]:
    """Internal (Anthropic-style) tool dicts shared by every provider."""
    return [
        {
            "name": t.name,
            "description": t.description,
            "input_schema": t.input_schema,
        }
        for t in tools
    ]


def file_part_to_data_url(part: dict) -> str:
    return f"data:{part.get('mime_type', 'application/octet-stream')};base64,{part['data']}"


def repair_instructions(prompt: str) -> str:
    return (
        f"{prompt}\n\n"
        "Respond only by calling the provided function with arguments that satisfy its schema."
    )

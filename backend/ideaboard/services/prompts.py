"""Prompt templates and deterministic fallbacks for project generation."""

import json
import re
from typing import Literal

from ideaboard.models.project import Feature, Task

Locale = Literal["zh", "en"]

_CJK = re.compile(r"[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]")


def detect_locale(text: str) -> Locale:
    """Chinese if the text contains any CJK ideograph, English otherwise."""
    return "zh" if _CJK.search(text or "") else "en"


def prd_prompt(idea: str, locale: Locale) -> str:
    if locale == "zh":
        return (
            f'为这个想法写一份简洁的150字产品需求文档(PRD)，使用Markdown格式："{idea}"。'
            "包含概述、核心功能和用户体验部分。内容要具体和可执行。请用中文回复。"
        )
    return (
        "Write a concise 150-word Product Requirements Document (PRD) in Markdown "
        f'for this idea: "{idea}". Include sections for Overview, Core Features, '
        "and User Experience. Be specific and actionable."
    )


def features_prompt(prd: str, locale: Locale) -> str:
    if locale == "zh":
        return (
            "从以下 PRD 中提取 3–5 个 MVP 功能，输出 JSON 数组。\n"
            '每个功能结构：{"id":数字,"title":"字符串","description":"字符串"}\n'
            "不要其它文本。\n"
            f"PRD：{prd}"
        )
    return (
        "Extract 3-5 MVP features from the PRD below, output as JSON array.\n"
        'Each feature structure: {"id":number,"title":"string","description":"string"}\n'
        "No other text.\n"
        f"PRD: {prd}"
    )


def tasks_prompt(features: list[Feature], locale: Locale) -> str:
    features_json = json.dumps(
        [f.model_dump(mode="json") for f in features], ensure_ascii=False
    )
    if locale == "zh":
        return (
            "为这些功能，为每个功能创建3-4个技术TODO项作为JSON。格式："
            '{"tasks": [{"fid": 功能ID, "title": "任务标题", "description": "任务描述", '
            '"priority": "Must have|Should have|Could have|Won\'t have", "status": "todo"}]}。'
            "只返回JSON对象，不要其他文本。\n\n"
            f"功能:\n{features_json}"
        )
    return (
        "For these features, create 3–4 technical TODO items for each feature as JSON. "
        'Format: {"tasks": [{"fid": featureId, "title": "task title", '
        '"description": "task description", '
        '"priority": "Must have|Should have|Could have|Won\'t have", "status": "todo"}]}. '
        "Return ONLY the JSON object, no other text.\n\n"
        f"Features:\n{features_json}"
    )


_FALLBACK_FEATURES: dict[str, list[tuple[str, str]]] = {
    "zh": [
        ("核心功能1", "主要功能"),
        ("用户界面", "干净直观的用户界面"),
        ("数据管理", "存储和管理数据"),
    ],
    "en": [
        ("Core Feature 1", "Main functionality"),
        ("User Interface", "Clean and intuitive UI"),
        ("Data Management", "Store and manage data"),
    ],
}

_FALLBACK_TASK_TITLES: dict[str, list[str]] = {
    "zh": ["实现{}核心逻辑", "创建{}UI组件", "添加{}错误处理"],
    "en": [
        "Implement {} core logic",
        "Create {} UI components",
        "Add {} error handling",
    ],
}


def fallback_features(locale: Locale) -> list[Feature]:
    return [
        Feature(id=i, title=title, description=description)
        for i, (title, description) in enumerate(_FALLBACK_FEATURES[locale], start=1)
    ]


def fallback_tasks(features: list[Feature], locale: Locale) -> list[Task]:
    """Three placeholder tasks per feature."""
    return [
        Task(
            id=f"task-{feature.id}-{n}",
            fid=feature.id,
            title=template.format(feature.title),
            status="todo",
            tag=feature.title,
        )
        for feature in features
        for n, template in enumerate(_FALLBACK_TASK_TITLES[locale], start=1)
    ]

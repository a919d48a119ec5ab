"""
Content items bundled by plugins.

- Agents: persona prompts (agents/*.md)
- Skills: instructional playbooks (skills/<name>/SKILL.md)
- Commands: slash-command templates (commands/*.md)

All three are markdown files with YAML frontmatter. Bazaar reads the
metadata and passes the prose through untouched.
"""

from bazaar.content.agent import Agent, AgentFrontmatter, load_agent, parse_agent_markdown
from bazaar.content.command import (
    Command,
    CommandFrontmatter,
    load_command,
    parse_command_markdown,
)
from bazaar.content.frontmatter import split_frontmatter, split_tool_list
from bazaar.content.skill import (
    SKILL_BODY_SOFT_LIMIT,
    Skill,
    SkillFrontmatter,
    load_skill,
    parse_skill_markdown,
)

__all__ = [
    # Agents
    "Agent",
    "AgentFrontmatter",
    "load_agent",
    "parse_agent_markdown",
    # Skills
    "SKILL_BODY_SOFT_LIMIT",
    "Skill",
    "SkillFrontmatter",
    "load_skill",
    "parse_skill_markdown",
    # Commands
    "Command",
    "CommandFrontmatter",
    "load_command",
    "parse_command_markdown",
    # Frontmatter helpers
    "split_frontmatter",
    "split_tool_list",
]

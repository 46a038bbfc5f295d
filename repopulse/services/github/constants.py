"""Constants for GitHub service."""

API_VERSION = "2022-11-28"

# Largest page GitHub accepts for list endpoints
MAX_PER_PAGE = 100

# Contributor fallback looks at this many of the latest commits
CONTRIBUTOR_FALLBACK_SAMPLE = 100

DEFAULT_LANGUAGE_COLOR = "#8b8b8b"

# Standard GitHub language colors (subset of most common)
GITHUB_LANGUAGE_COLORS: dict[str, str] = {
    "TypeScript": "#3178c6",
    "JavaScript": "#f1e05a",
    "CSS": "#563d7c",
    "HTML": "#e34c26",
    "Python": "#3572A5",
    "Java": "#b07219",
    "Go": "#00ADD8",
    "Rust": "#dea584",
    "Ruby": "#701516",
    "PHP": "#4F5D95",
    "C#": "#178600",
    "C++": "#f34b7d",
    "C": "#555555",
    "Shell": "#89e051",
    "SCSS": "#c6538c",
    "Vue": "#41b883",
    "Svelte": "#ff3e00",
    "MDX": "#fcb32c",
    "Dockerfile": "#384d54",
    "JSON": "#292929",
    "YAML": "#cb171e",
    "Markdown": "#083fa1",
}

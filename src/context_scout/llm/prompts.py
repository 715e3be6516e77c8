import yaml
from pathlib import Path

PROMPTS_DIR = Path(__file__).parent / "prompt_templates"

def load_prompt(name: str, prompts_dir: Path = PROMPTS_DIR) -> str:
    # Prioritize .yaml for structured prompts
    yaml_path = Path(prompts_dir) / f"{name}.yaml"
    if yaml_path.exists():
        with open(yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
            return data.get("content", "")

    # Fallback to .md
    md_path = Path(prompts_dir) / f"{name}.md"
    if md_path.exists():
        with open(md_path, "r", encoding="utf-8") as f:
            return f.read()

    raise FileNotFoundError(f"Prompt {name} not found as .yaml or .md")

def build_answer_prompt(question: str, transcript: str, history: str = "") -> str:
    sections = []
    if history:
        sections.append(history.rstrip("\n"))
    sections.append(f"Context:\n{transcript}")
    sections.append(f"Question:\n{question}")
    return "\n\n".join(sections)

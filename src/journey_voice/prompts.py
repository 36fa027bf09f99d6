"""Spoken prompts and intro parsing for the journey exercise.

The exercise asks the user for a sentence of the form
「○○したいけれど、○○できない」 and then walks four journeys, each probing
one consequence of doing (A) or not being able to do (B):

    journey1: A done      -> what is good?
    journey2: B not done  -> what is bad?
    journey3: A done      -> what is bad?
    journey4: B not done  -> what is good?
"""

import re
from dataclasses import dataclass
from typing import Literal

from .models import Variables


@dataclass(frozen=True)
class JourneyPrompt:
    """Opening question template for one journey."""

    key: str
    variable: Literal["A", "B"]
    template: str

    def question(self, variables: Variables) -> str:
        """Render the opening question with the journey's variable."""
        return self.template.format(value=getattr(variables, self.variable))


JOURNEYS: tuple[JourneyPrompt, ...] = (
    JourneyPrompt("journey1", "A", "{value}できたら良いことは何ですか？"),
    JourneyPrompt("journey2", "B", "{value}できなかったら悪いことは何ですか？"),
    JourneyPrompt("journey3", "A", "{value}できたら悪いことは何ですか？"),
    JourneyPrompt("journey4", "B", "{value}できなかったら良いことは何ですか？"),
)

GREETING = "「まるまるしたいけれど、まるまるできない」、の形式で教えてください"

INTRO_RETRY = (
    "すみません、よく聞き取れませんでした。"
    "「まるまるしたいけれど、まるまるできない」の形式でもう一度教えてください。"
)

# Recorded as the question for every turn after the journey opener
FOLLOW_UP_RECORDED = "それだとどうなりますか？"

JOURNEY_CLOSING = "はい、ここまでで、何か感じたこと、気がついたことはありますか？"

SUMMARY_PROMPT = "これで全ての旅が終わりました。もう一度全体を見直して、感じたことを教えて下さい。"

# (A)したい [connective] [、] (B)[が/を]できない
INTRO_PATTERN = re.compile(
    r"(.+?)し?たい"
    r"(?:けれども?|けど|だけど|なのに|のに)?"
    r"[、,，\s]*"
    r"(.+?)(?:が|を)?"
    r"(?:できない|出来ない|きない|出来ん)"
)


def journey_prompt(number: int) -> JourneyPrompt:
    """Get the prompt definition for journey 1-4."""
    return JOURNEYS[number - 1]


def follow_up(answer: str) -> str:
    """Build the spoken follow-up question from the user's last answer."""
    return f"{answer}だと、どうなりますか？"


def extract_variables(text: str) -> Variables | None:
    """Pull A (wanted) and B (blocked) out of an intro utterance.

    Args:
        text: Recognized utterance

    Returns:
        Extracted variables, or None if the sentence does not fit the pattern
    """
    match = INTRO_PATTERN.search(text.strip())
    if not match:
        return None
    wanted, blocked = (group.strip() for group in match.groups())
    if not wanted or not blocked:
        return None
    return Variables(A=wanted, B=blocked)

"""Built-in Python challenges and demo bots.

Inserted on startup when the tables are empty, or by
``scripts/seed_challenges.py``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codeduel.db.models.challenge import Challenge, Difficulty
from codeduel.db.models.demo_bot import DemoBot

logger = logging.getLogger(__name__)


@dataclass
class ChallengeTemplate:
    """Template for a battle challenge."""
    slug: str
    title: str
    description: str
    function_signature: str
    test_cases: list[dict[str, Any]]  # [{"input": [args...], "expected": value}]
    difficulty: Difficulty
    examples: list[dict[str, str]] = field(default_factory=list)
    constraints: list[str] = field(default_factory=list)
    time_complexity: Optional[str] = None
    space_complexity: Optional[str] = None

    @property
    def solution_template(self) -> str:
        return f"{self.function_signature}:\n    # Write your solution here\n    pass\n"

    def to_model(self) -> Challenge:
        return Challenge(
            title=self.title,
            difficulty=self.difficulty.value,
            description=self.description,
            function_signature=self.function_signature,
            examples=self.examples,
            constraints=self.constraints,
            time_complexity=self.time_complexity,
            space_complexity=self.space_complexity,
            test_cases=self.test_cases,
            solution_template=self.solution_template,
            is_active=True,
        )


CHALLENGES: list[ChallengeTemplate] = [
    ChallengeTemplate(
        slug="two-sum",
        title="Two Sum",
        description=(
            "Given a list of integers `nums` and an integer `target`, return the indices "
            "of the two numbers that add up to `target`.\n\n"
            "Each input has exactly one solution and you may not use the same element twice. "
            "Return the indices in ascending order."
        ),
        function_signature="def two_sum(nums, target)",
        difficulty=Difficulty.EASY,
        examples=[
            {"input": "nums = [2, 7, 11, 15], target = 9", "output": "[0, 1]",
             "explanation": "nums[0] + nums[1] == 9"},
            {"input": "nums = [3, 2, 4], target = 6", "output": "[1, 2]"},
        ],
        constraints=[
            "2 <= len(nums) <= 10^4",
            "-10^9 <= nums[i] <= 10^9",
            "Only one valid answer exists",
        ],
        time_complexity="O(n)",
        space_complexity="O(n)",
        test_cases=[
            {"input": [[2, 7, 11, 15], 9], "expected": [0, 1]},
            {"input": [[3, 2, 4], 6], "expected": [1, 2]},
            {"input": [[3, 3], 6], "expected": [0, 1]},
            {"input": [[-1, -2, -3, -4, -5], -8], "expected": [2, 4]},
            {"input": [[0, 4, 3, 0], 0], "expected": [0, 3]},
        ],
    ),
    ChallengeTemplate(
        slug="valid-palindrome",
        title="Valid Palindrome",
        description=(
            "Return `True` if the string `s` reads the same forward and backward after "
            "lower-casing it and removing every non-alphanumeric character."
        ),
        function_signature="def is_palindrome(s)",
        difficulty=Difficulty.EASY,
        examples=[
            {"input": 's = "A man, a plan, a canal: Panama"', "output": "True"},
            {"input": 's = "race a car"', "output": "False"},
        ],
        constraints=["0 <= len(s) <= 2 * 10^5", "s consists of printable ASCII characters"],
        time_complexity="O(n)",
        space_complexity="O(1)",
        test_cases=[
            {"input": ["A man, a plan, a canal: Panama"], "expected": True},
            {"input": ["race a car"], "expected": False},
            {"input": [" "], "expected": True},
            {"input": ["No 'x' in Nixon"], "expected": True},
            {"input": ["0P"], "expected": False},
        ],
    ),
    ChallengeTemplate(
        slug="fizzbuzz",
        title="FizzBuzz",
        description=(
            "Return a list of strings for the numbers 1 to `n`. Multiples of 3 become "
            '"Fizz", multiples of 5 become "Buzz", multiples of both become "FizzBuzz" '
            "and every other number is its decimal string."
        ),
        function_signature="def fizz_buzz(n)",
        difficulty=Difficulty.EASY,
        examples=[
            {"input": "n = 5", "output": '["1", "2", "Fizz", "4", "Buzz"]'},
        ],
        constraints=["1 <= n <= 10^4"],
        time_complexity="O(n)",
        space_complexity="O(n)",
        test_cases=[
            {"input": [1], "expected": ["1"]},
            {"input": [3], "expected": ["1", "2", "Fizz"]},
            {"input": [5], "expected": ["1", "2", "Fizz", "4", "Buzz"]},
            {
                "input": [15],
                "expected": [
                    "1", "2", "Fizz", "4", "Buzz", "Fizz", "7", "8", "Fizz", "Buzz",
                    "11", "Fizz", "13", "14", "FizzBuzz",
                ],
            },
        ],
    ),
    ChallengeTemplate(
        slug="valid-parentheses",
        title="Valid Parentheses",
        description=(
            "Given a string containing only the characters `()[]{}`, return `True` if every "
            "opening bracket is closed by the same type of bracket in the correct order."
        ),
        function_signature="def is_valid(s)",
        difficulty=Difficulty.MEDIUM,
        examples=[
            {"input": 's = "()[]{}"', "output": "True"},
            {"input": 's = "(]"', "output": "False"},
        ],
        constraints=["1 <= len(s) <= 10^4"],
        time_complexity="O(n)",
        space_complexity="O(n)",
        test_cases=[
            {"input": ["()"], "expected": True},
            {"input": ["()[]{}"], "expected": True},
            {"input": ["(]"], "expected": False},
            {"input": ["([)]"], "expected": False},
            {"input": ["{[]}"], "expected": True},
            {"input": ["(("], "expected": False},
        ],
    ),
    ChallengeTemplate(
        slug="longest-substring",
        title="Longest Substring Without Repeating Characters",
        description=(
            "Return the length of the longest substring of `s` that contains no repeated "
            "characters."
        ),
        function_signature="def length_of_longest_substring(s)",
        difficulty=Difficulty.MEDIUM,
        examples=[
            {"input": 's = "abcabcbb"', "output": "3", "explanation": 'The answer is "abc".'},
            {"input": 's = "bbbbb"', "output": "1"},
        ],
        constraints=["0 <= len(s) <= 5 * 10^4"],
        time_complexity="O(n)",
        space_complexity="O(min(n, m))",
        test_cases=[
            {"input": ["abcabcbb"], "expected": 3},
            {"input": ["bbbbb"], "expected": 1},
            {"input": ["pwwkew"], "expected": 3},
            {"input": [""], "expected": 0},
            {"input": ["dvdf"], "expected": 3},
        ],
    ),
    ChallengeTemplate(
        slug="merge-intervals",
        title="Merge Intervals",
        description=(
            "Given a list of intervals `[start, end]`, merge all overlapping intervals and "
            "return the result sorted by start."
        ),
        function_signature="def merge(intervals)",
        difficulty=Difficulty.HARD,
        examples=[
            {"input": "intervals = [[1, 3], [2, 6], [8, 10], [15, 18]]",
             "output": "[[1, 6], [8, 10], [15, 18]]"},
        ],
        constraints=["1 <= len(intervals) <= 10^4", "start <= end"],
        time_complexity="O(n log n)",
        space_complexity="O(n)",
        test_cases=[
            {"input": [[[1, 3], [2, 6], [8, 10], [15, 18]]], "expected": [[1, 6], [8, 10], [15, 18]]},
            {"input": [[[1, 4], [4, 5]]], "expected": [[1, 5]]},
            {"input": [[[1, 4], [0, 4]]], "expected": [[0, 4]]},
            {"input": [[[1, 4], [2, 3]]], "expected": [[1, 4]]},
            {"input": [[[5, 6]]], "expected": [[5, 6]]},
        ],
    ),
]


DEMO_BOTS: list[dict[str, Any]] = [
    {"name": "Byte Rookie", "username": "byte_rookie", "skill_level": 1, "solve_time_seconds": 840},
    {"name": "Loop Learner", "username": "loop_learner", "skill_level": 2, "solve_time_seconds": 720},
    {"name": "Stack Sage", "username": "stack_sage", "skill_level": 3, "solve_time_seconds": 600},
    {"name": "Recursion Ronin", "username": "recursion_ronin", "skill_level": 4, "solve_time_seconds": 450},
    {"name": "Big-O Oracle", "username": "big_o_oracle", "skill_level": 5, "solve_time_seconds": 300},
]


def get_challenge_by_slug(slug: str) -> Optional[ChallengeTemplate]:
    """Get a challenge template by its slug."""
    for challenge in CHALLENGES:
        if challenge.slug == slug:
            return challenge
    return None


def get_challenges_by_difficulty(difficulty: Difficulty) -> list[ChallengeTemplate]:
    return [c for c in CHALLENGES if c.difficulty == difficulty]


async def seed_defaults(session: AsyncSession) -> tuple[int, int]:
    """Insert built-in challenges and demo bots into empty tables.

    Returns:
        (challenges_created, bots_created)
    """
    challenges_created = 0
    bots_created = 0

    challenge_count = await session.scalar(select(func.count()).select_from(Challenge))
    if not challenge_count:
        for template in CHALLENGES:
            session.add(template.to_model())
            challenges_created += 1

    bot_count = await session.scalar(select(func.count()).select_from(DemoBot))
    if not bot_count:
        for bot in DEMO_BOTS:
            session.add(DemoBot(is_active=True, **bot))
            bots_created += 1

    if challenges_created or bots_created:
        await session.flush()
        logger.info(f"Seeded {challenges_created} challenges and {bots_created} demo bots")

    return challenges_created, bots_created

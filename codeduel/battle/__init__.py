"""Battle mechanics - room codes, the countdown, and remote judging.

Solutions are run by an external execution API; nothing is executed
in-process.
"""

from codeduel.battle.executor import RemoteExecutor
from codeduel.battle.judge import SolutionJudge
from codeduel.battle.timer import BattleTimer

__all__ = ["RemoteExecutor", "SolutionJudge", "BattleTimer"]

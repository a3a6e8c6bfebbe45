from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import chess

from ..engine.position import PocketBoard
from .config import SearchConfig


logger = logging.getLogger(__name__)


class SearchInvariantError(RuntimeError):
    """Move generation and outcome detection disagree; the search cannot continue."""


@dataclass
class Node:
    """One reached position in the search tree.

    Attributes:
        side_that_moved (chess.Color): Side whose move produced ``position``.
        position (PocketBoard): Snapshot of the position, never mutated after
            insertion.
        wins (float): Cumulative score for ``side_that_moved``; draws add 0.5.
        simulations (int): Number of rollouts that passed through this node.
        children (List[int]): Child ids in move-generation order.
        move (Optional[chess.Move]): Move that led here, ``None`` at the root.
    """

    side_that_moved: chess.Color
    position: PocketBoard
    wins: float = 0.0
    simulations: int = 0
    children: List[int] = field(default_factory=list)
    move: Optional[chess.Move] = None

    @classmethod
    def root(cls, position: PocketBoard) -> "Node":
        return cls(side_that_moved=not position.turn, position=position.copy(stack=False))


class SearchTree:
    """Append-only arena of MCTS nodes addressed by integer id.

    Nodes hold their children by id and have no parent pointer; a branch is
    the list of ids from the root down. Ids stay valid for the lifetime of
    the tree. Not thread-safe: one caller drives iterations at a time.
    """

    def __init__(
        self,
        position: PocketBoard,
        config: Optional[SearchConfig] = None,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or SearchConfig()
        self.rng = rng if rng is not None else self.config.rng()
        self._nodes: List[Node] = []
        self.root = self.push_node(Node.root(position))

    def __len__(self) -> int:
        return len(self._nodes)

    def push_node(self, node: Node) -> int:
        self._nodes.append(node)
        return len(self._nodes) - 1

    def node(self, node_id: int) -> Node:
        return self._nodes[node_id]

    # ---- Selection ----
    def uct_score(self, child: Node, parent_simulations: int) -> float:
        if child.simulations == 0:
            return math.inf
        exploit = child.wins / child.simulations
        explore = math.sqrt(math.log(parent_simulations) / child.simulations)
        return exploit + self.config.exploration_constant * explore

    def select_next(self, node_id: int) -> Optional[int]:
        """Return the child with the highest UCT score, or None for a leaf.

        Unvisited children score infinity; ties go to the earliest child.
        """
        node = self._nodes[node_id]
        best: Optional[int] = None
        best_score = -math.inf
        for child_id in node.children:
            score = self.uct_score(self._nodes[child_id], node.simulations)
            if score > best_score:
                best, best_score = child_id, score
        return best

    def select_branch(self, root: int) -> List[int]:
        branch = [root]
        while (next_id := self.select_next(branch[-1])) is not None:
            branch.append(next_id)
        return branch

    # ---- Expansion ----
    def expand_tree(self, leaf_id: int) -> List[int]:
        """Create one child per legal move of the leaf and return their ids.

        Raises:
            ValueError: If the node already has children.
            chess.IllegalMoveError: If move generation yields an illegal move.
        """
        leaf = self._nodes[leaf_id]
        if leaf.children:
            raise ValueError(f"node {leaf_id} is already expanded")
        side = not leaf.side_that_moved
        children: List[int] = []
        for move in list(leaf.position.legal_moves):
            position = leaf.position.copy(stack=False)
            position.play(move)
            node = Node(side_that_moved=side, position=position, move=move)
            children.append(self.push_node(node))
        # Re-resolve through the arena after appending.
        self._nodes[leaf_id].children = children
        logger.debug("expanded node %d into %d children", leaf_id, len(children))
        return children

    # ---- Simulation ----
    def simulate(self, position: PocketBoard) -> chess.Outcome:
        """Play uniformly random legal moves from ``position`` until the game ends.

        The input position is not modified. Termination follows python-chess:
        checkmate, stalemate, seventy-five moves or fivefold repetition.

        Raises:
            SearchInvariantError: If a position has no legal moves but no
                outcome either.
        """
        board = position.copy(stack=False)
        plies = 0
        while True:
            outcome = board.outcome()
            if outcome is not None:
                logger.debug("rollout finished after %d plies: %s", plies, outcome.result())
                return outcome
            moves = list(board.legal_moves)
            if not moves:
                raise SearchInvariantError(
                    f"no legal moves but the game is not over: {board.fen()}"
                )
            board.push(self.rng.choice(moves))
            plies += 1

    # ---- Backpropagation ----
    def backpropagate(self, branch: Iterable[int], outcome: chess.Outcome) -> None:
        for node_id in branch:
            node = self._nodes[node_id]
            node.simulations += 1
            if outcome.winner is None:
                node.wins += 0.5
            elif outcome.winner == node.side_that_moved:
                node.wins += 1.0

    # ---- Iteration ----
    def execute_mcts(self, root: Optional[int] = None) -> chess.Outcome:
        """Run one select / expand / simulate / backpropagate iteration.

        Returns:
            chess.Outcome: Result of the rollout that was backpropagated.
        """
        branch = self.select_branch(self.root if root is None else root)
        leaf = branch[-1]
        children = self.expand_tree(leaf)
        if children:
            # Children are all unvisited, so UCT picks the first one.
            branch.append(children[0])
        outcome = self.simulate(self._nodes[branch[-1]].position)
        self.backpropagate(branch, outcome)
        return outcome

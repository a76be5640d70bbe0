"""Tabular Q-learning over segmented frames.

States are recognised by comparing frame abstractions: a visited frame
matches a known state when both character centroids lie within ``radius``
(L1 distance) of the state's centroids and the frames' mean squared error is
below a limit. Every state holds one Q value per action; an action is a byte
whose bits are controller buttons.
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

import numpy as np
from PIL import Image

from dojo_env.imaging import compute_mse, draw_border, draw_centroid
from dojo_env.segmentation import FrameAbstraction

logger = logging.getLogger(__name__)

NUMBER_OF_ACTIONS = 256
DEFAULT_RADIUS = 30
DISCOUNT_FACTOR = 0.9
LEARNING_RATE = 0.5

LAST_STATE_BORDER_COLOR = (128, 0, 0)
REVISITED_BORDER_COLOR = (128, 128, 0)

AGENT_FILE = "agent.json"
STATES_DIR = "states"
STATES_DATA_FILE = "data.csv"
STATES_PER_ITERATION_FILE = "states_per_iteration.csv"
MAX_Q_PER_ITERATION_FILE = "max_q_per_iteration.csv"


def _zero_q() -> np.ndarray:
    return np.zeros(NUMBER_OF_ACTIONS, dtype=np.float32)


@dataclass(eq=False)
class State:
    """A recognised game situation and the Q value of every action in it."""

    frame_abstraction: FrameAbstraction
    q: np.ndarray = field(default_factory=_zero_q)


@dataclass(eq=False)
class Agent:
    """Q-learning agent that discovers states as it plays."""

    radius: int = DEFAULT_RADIUS
    discount_factor: float = DISCOUNT_FACTOR
    learning_rate: float = LEARNING_RATE
    states: list[State] = field(default_factory=list)
    iteration_number: int = 0
    states_per_iteration: list[tuple[float, float]] = field(default_factory=list)
    max_q_per_iteration: list[tuple[float, float]] = field(default_factory=list)
    training_time: timedelta = field(default_factory=timedelta)
    rng: random.Random = field(default_factory=random.Random, repr=False)
    revisited: bool = False
    previous_index: int | None = None
    previous_action: int | None = None
    previous_q: float | None = None

    @property
    def number_of_states(self) -> int:
        return len(self.states)

    def visit_state(self, frame_abstraction: FrameAbstraction, reward: float, max_mse: float) -> int:
        """Record a visit, learn from ``reward`` and return the next action.

        Staying in the most recently added state returns action 0 and learns
        nothing.
        """
        state = State(frame_abstraction)
        index = self._search_state(state, max_mse)
        if index is not None:
            if index == len(self.states) - 1:
                return 0
            current_action, max_q = self._choose_best_action(self.states[index])
            current_index = index
            self.revisited = True
        else:
            current_index = len(self.states)
            self.states.append(state)
            current_action = self.rng.randint(0, NUMBER_OF_ACTIONS - 1)
            max_q = np.float32(0.0)
            self.revisited = False

        if self.previous_index is not None:
            q = self.states[self.previous_index].q
            act = self.previous_action
            difference = (
                np.float32(reward) + np.float32(self.discount_factor) * np.float32(max_q) - q[act]
            )
            q[act] = q[act] + np.float32(self.learning_rate) * difference

        iteration = float(self.iteration_number)
        self.states_per_iteration.append((iteration, float(len(self.states))))
        self.max_q_per_iteration.append((iteration, float(max_q)))
        self.iteration_number += 1

        self.previous_index = current_index
        self.previous_action = current_action
        self.previous_q = float(max_q)
        return current_action

    def _search_state(self, state: State, max_mse: float) -> int | None:
        cx1, cy1 = state.frame_abstraction.char1_centroid
        cx2, cy2 = state.frame_abstraction.char2_centroid
        best_index = 0
        min_mse = 255.0 * 255.0
        for i, candidate in enumerate(self.states):
            ox1, oy1 = candidate.frame_abstraction.char1_centroid
            ox2, oy2 = candidate.frame_abstraction.char2_centroid
            distance1 = abs(ox1 - cx1) + abs(oy1 - cy1)
            distance2 = abs(ox2 - cx2) + abs(oy2 - cy2)
            if distance1 < self.radius and distance2 < self.radius:
                mse = compute_mse(state.frame_abstraction.frame, candidate.frame_abstraction.frame)
                if mse < min_mse:
                    best_index = i
                    min_mse = mse
        return best_index if min_mse < max_mse else None

    def _choose_best_action(self, state: State) -> tuple[int, np.float32]:
        max_q = np.float32(-1.0)
        best_action = None
        for action, q in enumerate(state.q):
            if q > max_q:
                best_action = action
                max_q = q
        if best_action is not None:
            logger.debug("Chosen!: 0b%08d (%s)", int(bin(best_action)[2:]), max_q)
            return best_action, max_q
        return self.rng.randint(0, NUMBER_OF_ACTIONS - 1), max_q

    def last_state_abstraction(self) -> np.ndarray:
        """Frame of the current state with centroids and a revisit border drawn."""
        if self.previous_index is None:
            return np.zeros((0, 0, 3), dtype=np.uint8)
        index = self.previous_index
        abstraction = self.states[index].frame_abstraction
        frame = np.array(abstraction.frame, dtype=np.uint8, copy=True)
        draw_centroid(frame, abstraction.char1_centroid, self.radius)
        draw_centroid(frame, abstraction.char2_centroid, self.radius)
        if self.revisited:
            if index == len(self.states) - 1:
                draw_border(frame, LAST_STATE_BORDER_COLOR)
            else:
                draw_border(frame, REVISITED_BORDER_COLOR)
        return frame

    def add_training_time(self, training_time: timedelta) -> None:
        self.training_time += training_time


def _format_f32(value) -> str:
    return np.format_float_positional(np.float32(value), trim="-")


def _format_f64(value) -> str:
    return np.format_float_positional(np.float64(value), trim="-")


def _duration_to_json(duration: timedelta) -> dict:
    secs = duration.days * 86400 + duration.seconds
    return {"secs": secs, "nanos": duration.microseconds * 1000}


def _duration_from_json(data: dict) -> timedelta:
    return timedelta(seconds=int(data["secs"]), microseconds=int(data["nanos"]) // 1000)


def _write_pairs(path: Path, pairs) -> None:
    with path.open("w", encoding="utf-8") as out:
        for first, second in pairs:
            out.write(f"{_format_f64(first)}, {_format_f64(second)}\n")


def _read_pairs(path: Path) -> list[tuple[float, float]]:
    pairs = []
    with path.open(encoding="utf-8") as src:
        for line in src:
            tokens = line.rstrip("\n").split(",")
            pairs.append((float(tokens[0].strip()), float(tokens[1].strip())))
    return pairs


def save_agent(agent: Agent, path) -> None:
    """Write ``agent`` into a new directory; an existing path is left alone."""
    logger.info("Saving agent to %s...", path)
    agent_path = Path(path)
    if agent_path.exists():
        logger.info("Path already exists: %s", path)
        return
    agent_path.mkdir(parents=True)

    summary = {
        "number_of_states": agent.number_of_states,
        "iteration_number": agent.iteration_number,
        "training_time": _duration_to_json(agent.training_time),
    }
    (agent_path / AGENT_FILE).write_text(json.dumps(summary, indent=2), encoding="utf-8")

    states_path = agent_path / STATES_DIR
    states_path.mkdir(parents=True, exist_ok=True)
    with (states_path / STATES_DATA_FILE).open("w", encoding="utf-8") as data:
        for i, state in enumerate(agent.states):
            abstraction = state.frame_abstraction
            frame_name = f"{i:06}.png"
            Image.fromarray(np.asarray(abstraction.frame, dtype=np.uint8), "RGB").save(
                states_path / frame_name
            )
            q_name = f"{i:06}_q.csv"
            (states_path / q_name).write_text(
                "".join(f"{_format_f32(q)}\n" for q in state.q), encoding="utf-8"
            )
            x1, y1 = abstraction.char1_centroid
            x2, y2 = abstraction.char2_centroid
            data.write(f"{frame_name},{x1},{y1},{x2},{y2},{q_name}\n")

    _write_pairs(agent_path / STATES_PER_ITERATION_FILE, agent.states_per_iteration)
    _write_pairs(agent_path / MAX_Q_PER_ITERATION_FILE, agent.max_q_per_iteration)


def load_agent(path) -> Agent:
    """Read an agent written by :func:`save_agent`; a missing path gives a new agent."""
    logger.info("Loading agent from %s...", path)
    agent_path = Path(path)
    if not agent_path.exists():
        logger.info("Path doesn't exist: %s", path)
        return Agent()

    summary = json.loads((agent_path / AGENT_FILE).read_text(encoding="utf-8"))

    states = []
    states_path = agent_path / STATES_DIR
    with (states_path / STATES_DATA_FILE).open(encoding="utf-8") as data:
        for line in data:
            tokens = line.rstrip("\n").split(",")
            with Image.open(states_path / tokens[0]) as image:
                frame = np.array(image.convert("RGB"), dtype=np.uint8)
            char1_centroid = (int(tokens[1].strip()), int(tokens[2].strip()))
            char2_centroid = (int(tokens[3].strip()), int(tokens[4].strip()))
            state = State(FrameAbstraction(frame, char1_centroid, char2_centroid))
            with (states_path / tokens[5]).open(encoding="utf-8") as q_file:
                for i, q_line in enumerate(q_file):
                    state.q[i] = np.float32(float(q_line.strip()))
            states.append(state)

    return Agent(
        states=states,
        iteration_number=int(summary["iteration_number"]),
        training_time=_duration_from_json(summary["training_time"]),
        states_per_iteration=_read_pairs(agent_path / STATES_PER_ITERATION_FILE),
        max_q_per_iteration=_read_pairs(agent_path / MAX_Q_PER_ITERATION_FILE),
    )
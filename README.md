# dojo_env

Tools for teaching an agent to play a two-character fighting game from screen
frames alone. The package turns raw RGB frames into a compact *frame
abstraction*, which is a segmented image plus one centroid per character. It
then learns with tabular Q-learning which of 256 controller button
combinations to press.

## Install

```
pip install .
```

To run the test suite, install the `test` extra and run `pytest`.

## Images

All images are `numpy` arrays of dtype `uint8`:

- RGB images have shape `(height, width, 3)`.
- Grey masks have shape `(height, width)`.

Pixels are indexed as `img[y, x]`. Coordinates passed as tuples are `(x, y)`.

The frame geometry is fixed:

- The life bars are read on row 54, between columns 12–163 for player 1 and
  204–355 for player 2.
- Segmentation crops the frame to rows 100–579 and columns 0–367.

Full frames therefore need to be at least that large.

## Modules

### `dojo_env.imaging`

Pixel-level helpers.

- Conversion and morphology:
  - `to_luma` and `luma_to_rgb` convert between RGB and grey.
  - `dilate(mask, k)` is a binary dilation with an L1 ball of radius `k`.
- `compute_mse(img1, img2)` gives the mean squared error over all pixels and
  channels. It raises `ValueError` when the shapes differ.
- `apply_thresholds(img, red, green, blue)` zeroes each channel value that lies
  inside its inclusive `(low, high)` band. It always clears the rightmost
  column.
- Life bars:
  - `get_life_info(img)` returns two `LifeInfo` values. Each holds `life` (the
    fraction remaining) and `damage` (the fraction being lost to a hit).
  - `visualize_life_bars(img)` returns a greyscale copy with both bars
    colour-coded.
- Drawing helpers, all in place:
  - `draw_border`
  - `draw_centroid`
  - `enclose_with_q`, which draws a green border for positive `q` and a red
    border for negative `q`
  - `draw_x_limits`
- `get_x_limits` returns the leftmost and rightmost non-black columns.
- `add_to_trace(img, trace, amount)` overlays a frame on a fading trace of
  earlier frames.

### `dojo_env.segmentation`

`get_frame_abstraction(...)` finds both characters in a frame. It returns a
`FrameAbstraction` and a `VisionStages`:

- The `FrameAbstraction` holds `frame`, `char1_centroid` and `char2_centroid`.
- The `VisionStages` holds every intermediate image: the cropped, contrast,
  mask, masked, centroid HUD, character HUD and segmented frames.

The two colour histograms are plain dicts that map `(r, g, b)` to
`(count, total)`. They are updated in place whenever the characters stand
apart. The histograms are used to tell the characters apart and to keep their
identities when they cross sides.

The building blocks are public as well:

- `find_corners(mask)`
- `find_centroid(mask, corner1, corner2)`
- `grow_region(mask, centroid, corner1, corner2)`, which returns a `Character`
  with a mask and a bounding box

### `dojo_env.q_learning`

`Agent` is a Q-learning agent with these fields and defaults:

| Field | Default |
|---|---|
| `radius` | 30 |
| `discount_factor` | 0.9 |
| `learning_rate` | 0.5 |

How a visit is handled:

- **Matching.** A visited frame matches a known state when both character
  centroids are within `radius` (L1 distance) and the frame MSE is below
  `max_mse`.
- **`visit_state(frame_abstraction, reward, max_mse)`** updates the previous
  state's Q value and returns the next action. The action is an integer from 0
  to 255, and each bit is one controller button.
  - New states get a random action.
  - Known states get their best action.
  - Staying in the most recently added state returns `0` and learns nothing.
- **`last_state_abstraction()`** returns the current state's frame with its
  centroids drawn on it. A revisited state also gets a border.
- **Statistics.** `add_training_time(timedelta)` adds to the accumulated
  training time. `states_per_iteration` and `max_q_per_iteration` record one
  pair per iteration, for plotting.

Saving and loading:

- `save_agent(agent, path)` writes the agent into a new directory:
  - `agent.json`
  - `states/`, holding a PNG frame and a Q-value CSV for each state, plus
    `data.csv`
  - `states_per_iteration.csv`
  - `max_q_per_iteration.csv`

  If the path already exists, nothing is written.
- `load_agent(path)` reads such a directory back. A missing path gives a fresh
  `Agent`.

## Example

```python
from datetime import timedelta

from dojo_env.imaging import get_life_info
from dojo_env.q_learning import Agent, load_agent, save_agent
from dojo_env.segmentation import get_frame_abstraction

agent = Agent()
char1_hist, char2_hist = {}, {}


def step(frame):
    p1, p2 = get_life_info(frame)
    abstraction, stages = get_frame_abstraction(
        frame,
        (0, 100), (0, 100), (0, 100),
        3,
        char1_hist, char2_hist,
        0.5, 0.5,
        2, 2,
    )
    reward = p2.damage - p1.damage
    return agent.visit_state(abstraction, reward, 10.0)


agent.add_training_time(timedelta(seconds=5))
save_agent(agent, "runs/agent-001")
agent = load_agent("runs/agent-001")
```

## What this package does not do

The package does not run a game, capture frames, or press buttons. You supply
the RGB frames and apply the returned action byte to your own controller.

There is no command-line program and no window for watching play. Display the
images from `VisionStages` or `Agent.last_state_abstraction()` with whatever
tool you prefer.

The colour histograms are not saved by `save_agent`. Keep them yourself if you
need them across runs.
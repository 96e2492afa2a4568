from __future__ import annotations

import math

import pytest
import torch

from src.chessmind.domain.chess.board import Board, Move
from src.chessmind.domain.models.shared_network import (
    DEFAULT_LEARNING_RATE,
    DEFAULT_MOMENTUM,
    SharedNetwork,
    is_valid_hyperparameter,
)
from src.chessmind.domain.models.value_network import INPUT_FEATURES, ValueNetwork
from src.chessmind.domain.training.features import board_to_tensor


def test_value_network_shapes_and_initialisation() -> None:
    torch.manual_seed(0)
    model = ValueNetwork()

    output = model(torch.zeros((3, INPUT_FEATURES)))

    assert output.shape == (3, 1)
    assert torch.all(model.fc1.bias == 0)
    bound = math.sqrt(2.0 / INPUT_FEATURES)
    assert model.fc1.weight.abs().max().item() <= bound
    assert model.fc3.weight.shape == (1, 128)


def test_value_network_rejects_bad_shapes() -> None:
    model = ValueNetwork()

    with pytest.raises(ValueError):
        model(torch.zeros(INPUT_FEATURES))
    with pytest.raises(ValueError):
        model(torch.zeros((1, INPUT_FEATURES - 1)))


def test_forward_stays_strictly_inside_unit_interval(network: SharedNetwork) -> None:
    with torch.no_grad():
        network.model.fc3.bias.fill_(1_000.0)
    assert network.forward(torch.ones(INPUT_FEATURES)) < 1.0

    with torch.no_grad():
        network.model.fc3.bias.fill_(-1_000.0)
    assert network.forward(torch.ones(INPUT_FEATURES)) > -1.0


def test_training_moves_output_toward_target(network: SharedNetwork) -> None:
    features = board_to_tensor(Board.new_initial())
    before = network.forward(features)

    losses = [network.train(features, 1.0) for _ in range(20)]

    assert network.forward(features) > before
    assert losses[-1] < losses[0]
    assert network.learning_rate == pytest.approx(DEFAULT_LEARNING_RATE)
    assert network.momentum == pytest.approx(DEFAULT_MOMENTUM)


def test_train_batch_and_accuracy(network: SharedNetwork) -> None:
    start = Board.new_initial()
    moved = start.clone()
    moved.apply(Move.from_uci("e2e4"))
    inputs = [board_to_tensor(start), board_to_tensor(moved)]

    assert network.train_batch([], []) == 0.0
    assert network.accuracy([], []) == 0.0
    with pytest.raises(ValueError):
        network.train_batch(inputs, [1.0])

    loss = network.train_batch(inputs, [1.0, 1.0])
    assert loss >= 0.0

    for _ in range(500):
        if min(network.forward(features) for features in inputs) > 0.0:
            break
        network.train_batch(inputs, [1.0, 1.0])
    assert network.accuracy(inputs, [1.0, 1.0]) == 1.0
    assert network.accuracy(inputs, [0.0, 0.0]) == 0.0


def test_export_and_restore_round_trip(network: SharedNetwork) -> None:
    features = board_to_tensor(Board.new_initial())
    network.train(features, 1.0)
    state = network.export_state()

    torch.manual_seed(99)
    other = SharedNetwork()
    assert other.forward(features) != pytest.approx(network.forward(features))

    rejected = other.restore_state(state)

    assert rejected == ()
    assert other.forward(features) == pytest.approx(network.forward(features))


def test_export_state_is_a_snapshot(network: SharedNetwork) -> None:
    features = board_to_tensor(Board.new_initial())
    state = network.export_state()
    weight_before = state["model_state_dict"]["fc3.bias"].clone()

    network.train(features, 1.0)

    assert torch.equal(state["model_state_dict"]["fc3.bias"], weight_before)


def test_restore_rejects_invalid_hyperparameters(network: SharedNetwork) -> None:
    state = network.export_state()
    state["learning_rate"] = 5.0
    state["momentum"] = -0.1

    torch.manual_seed(7)
    other = SharedNetwork(learning_rate=0.01, momentum=0.5)
    rejected = other.restore_state(state)

    assert set(rejected) == {"learning_rate", "momentum"}
    assert other.learning_rate == pytest.approx(0.01)
    assert other.momentum == pytest.approx(0.5)
    assert torch.equal(other.model.fc1.weight, network.model.fc1.weight)


def test_restore_with_mismatched_shapes_leaves_weights_untouched(network: SharedNetwork) -> None:
    foreign = SharedNetwork(ValueNetwork(hidden_sizes=(32, 16))).export_state()
    before = network.export_state()["model_state_dict"]

    with pytest.raises(RuntimeError):
        network.restore_state(foreign)

    after = network.export_state()["model_state_dict"]
    assert all(torch.equal(before[key], after[key]) for key in before)


def test_restore_requires_model_state(network: SharedNetwork) -> None:
    with pytest.raises(ValueError):
        network.restore_state({"learning_rate": 0.01})


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.5, True), (1.0, True), (1, True), (0.0, False), (1.5, False), (float("nan"), False), (True, False), ("0.1", False)],
)
def test_hyperparameter_validation(value: object, expected: bool) -> None:
    assert is_valid_hyperparameter(value) is expected


def test_constructor_rejects_out_of_range_values() -> None:
    with pytest.raises(ValueError):
        SharedNetwork(learning_rate=0.0)
    with pytest.raises(ValueError):
        SharedNetwork(momentum=2.0)

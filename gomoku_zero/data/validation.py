"""
Data Validation Utilities

Validates persisted replay units before they reach the trainer.
"""

from dataclasses import dataclass

from .encoding import BLACK, WHITE, Board


@dataclass
class ValidationResult:
    """Result of validating a board, sample or replay unit."""

    is_valid: bool
    errors: list[str]
    warnings: list[str]

    def __bool__(self) -> bool:
        return self.is_valid


def validate_board(board: Board, size: int | None = None) -> ValidationResult:
    """
    Validate that a board is a square grid of legal cell values.

    Checks:
    - Board is a non-empty list of rows
    - Every row has the same length as the number of rows (or ``size``)
    - Only valid cell values (None, 1, 2)
    - Stone counts differ by at most one
    """
    errors = []
    warnings = []

    if not isinstance(board, list) or not board:
        errors.append("Board must be a non-empty list of rows")
        return ValidationResult(False, errors, warnings)

    expected = size if size is not None else len(board)
    if len(board) != expected:
        errors.append(f"Invalid number of rows: {len(board)} (expected {expected})")
        return ValidationResult(False, errors, warnings)

    for row_idx, row in enumerate(board):
        if not isinstance(row, list) or len(row) != expected:
            length = len(row) if isinstance(row, list) else "n/a"
            errors.append(f"Row {row_idx} has invalid length: {length} (expected {expected})")

    if errors:
        return ValidationResult(False, errors, warnings)

    for row_idx, row in enumerate(board):
        for col_idx, cell in enumerate(row):
            if cell not in (None, BLACK, WHITE):
                errors.append(f"Invalid cell value at ({row_idx}, {col_idx}): {cell}")

    if errors:
        return ValidationResult(False, errors, warnings)

    black = sum(1 for row in board for cell in row if cell == BLACK)
    white = sum(1 for row in board for cell in row if cell == WHITE)
    if abs(black - white) > 1:
        warnings.append(f"Unusual stone count: black={black}, white={white}")

    return ValidationResult(True, errors, warnings)


def validate_sample(data: dict, size: int | None = None) -> ValidationResult:
    """
    Validate one serialized episode sample.

    Checks the board, the side to move, the policy length and range, and
    that the outcome value is one of -1, 0, 1.
    """
    errors = []
    warnings = []

    if not isinstance(data, dict):
        return ValidationResult(False, ["Sample must be an object"], warnings)

    for key in ("board", "to_move", "policy", "value"):
        if key not in data:
            errors.append(f"Missing field: {key}")
    if errors:
        return ValidationResult(False, errors, warnings)

    board_result = validate_board(data["board"], size)
    if not board_result:
        return ValidationResult(False, board_result.errors, board_result.warnings)
    warnings.extend(board_result.warnings)

    board_size = len(data["board"])

    if data["to_move"] not in (BLACK, WHITE):
        errors.append(f"Invalid side to move: {data['to_move']}")

    policy = data["policy"]
    if not isinstance(policy, list) or len(policy) != board_size * board_size:
        length = len(policy) if isinstance(policy, list) else "n/a"
        errors.append(f"Policy has invalid length: {length} (expected {board_size * board_size})")
    elif any(not isinstance(p, (int, float)) or p < 0 for p in policy):
        errors.append("Policy contains negative or non-numeric entries")
    else:
        total = sum(policy)
        if total > 0 and abs(total - 1.0) > 1e-3:
            warnings.append(f"Policy sums to {total:.4f}")

    if data["value"] not in (-1, 0, 1):
        errors.append(f"Invalid outcome value: {data['value']}")

    return ValidationResult(len(errors) == 0, errors, warnings)


def validate_replay_unit(data: dict, size: int | None = None) -> ValidationResult:
    """
    Validate a deserialized replay unit (one finished game).

    Args:
        data: Parsed JSON of the unit.
        size: Expected board size, or None to accept any consistent size.

    Returns:
        ValidationResult; the first invalid sample stops validation.
    """
    errors = []
    warnings = []

    if not isinstance(data, dict):
        return ValidationResult(False, ["Replay unit must be an object"], warnings)

    if "game_id" not in data:
        errors.append("Missing field: game_id")
    samples = data.get("samples")
    if not isinstance(samples, list):
        errors.append("Missing or invalid field: samples")
    if errors:
        return ValidationResult(False, errors, warnings)

    if not samples:
        warnings.append("Replay unit contains no samples")

    for idx, sample in enumerate(samples):
        result = validate_sample(sample, size)
        if not result:
            errors.extend(f"Sample {idx}: {e}" for e in result.errors)
            return ValidationResult(False, errors, warnings)
        if size is None and sample["board"] and len(sample["board"]) != len(samples[0]["board"]):
            errors.append(f"Sample {idx}: board size differs from the first sample")
            return ValidationResult(False, errors, warnings)

    return ValidationResult(True, errors, warnings)

"""Random fair starting positions: constructor, fairness filters, orchestrator."""

from randomchess.generation.constructor import (
    BACK_PIECES,
    MAX_PLACEMENT_DRAWS,
    PlacementFailure,
    PositionConstructor,
    kings_adjacent,
    place_kings,
    place_pieces,
)
from randomchess.generation.fairness import (
    FairnessChecks,
    LegalMoveCount,
    LegalityRejection,
    Rejection,
    bishops_share_square_color,
    find_violation,
    is_king_in_check,
    kings_in_check,
    legal_move_counts,
    square_color,
)
from randomchess.generation.generator import (
    AttemptResult,
    GeneratedPosition,
    GenerationAbortedError,
    GenerationOptions,
    Outcome,
    PositionGenerator,
    assign_side_to_move,
    generate_position,
    normalized_fen,
)

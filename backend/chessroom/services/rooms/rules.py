import chess
import chess.pgn
from typing import Any, Dict, List, Optional

from chessroom.errors import IllegalMove, MalformedRequest
from chessroom.models import BLACK, WHITE, MoveRequest


PROMOTION_PIECES = {'q': chess.QUEEN, 'r': chess.ROOK, 'b': chess.BISHOP, 'n': chess.KNIGHT}


def color_name(turn: bool) -> str:
    return WHITE if turn == chess.WHITE else BLACK


def _parse_square(name: Any) -> int:
    try:
        return chess.parse_square(str(name).strip().lower())
    except ValueError:
        raise MalformedRequest(f"Unknown square: {name}")


class ChessRules:
    """Adapter exposing python-chess through the room's rules contract.

    Boards passed in are left as they were; ``apply_move`` hands back a new
    board so the caller can swap its position in one assignment. Queries
    push and pop moves while they run, so a shared board needs its owner's
    lock held around every call.
    """

    def initial_position(self) -> chess.Board:
        return chess.Board()

    def side_to_move(self, board: chess.Board) -> str:
        return color_name(board.turn)

    def to_move(self, board: chess.Board, request: MoveRequest) -> chess.Move:
        from_sq = _parse_square(request.from_square)
        to_sq = _parse_square(request.to_square)
        # Only a pawn reaching the last rank promotes; any other move ignores the field
        if board.piece_type_at(from_sq) != chess.PAWN or chess.square_rank(to_sq) not in (0, 7):
            return chess.Move(from_sq, to_sq)
        promotion = chess.QUEEN
        if request.promotion:
            promotion = PROMOTION_PIECES.get(str(request.promotion).lower())
            if promotion is None:
                raise MalformedRequest(f"Unknown promotion piece: {request.promotion}")
        return chess.Move(from_sq, to_sq, promotion=promotion)

    def apply_move(self, board: chess.Board, request: MoveRequest):
        """Return ``(new_board, move_dict)`` or raise IllegalMove."""
        move = self.to_move(board, request)
        if not board.is_legal(move):
            raise IllegalMove()
        described = self._describe(board, move)
        new_board = board.copy()
        new_board.push(move)
        return new_board, described

    def legal_moves(self, board: chess.Board, square: Any) -> List[Dict[str, Any]]:
        from_sq = _parse_square(square)
        moves = []
        for move in board.generate_legal_moves(from_mask=chess.BB_SQUARES[from_sq]):
            moves.append({
                'from': chess.square_name(move.from_square),
                'to': chess.square_name(move.to_square),
                'san': board.san(move),
                'capture': board.is_capture(move),
                'promotion': chess.piece_symbol(move.promotion) if move.promotion else None,
            })
        return moves

    # Terminal predicates

    def is_check(self, board: chess.Board) -> bool:
        return board.is_check()

    def is_checkmate(self, board: chess.Board) -> bool:
        return board.is_checkmate()

    def is_stalemate(self, board: chess.Board) -> bool:
        return board.is_stalemate()

    def is_draw(self, board: chess.Board) -> bool:
        # Stalemate, insufficient material, fifty-move rule or threefold repetition
        return (
            board.is_stalemate()
            or board.is_insufficient_material()
            or board.halfmove_clock >= 100
            or board.is_repetition(3)
        )

    def is_game_over(self, board: chess.Board) -> bool:
        return self.is_checkmate(board) or self.is_draw(board)

    # Serialization

    def fen(self, board: chess.Board) -> str:
        return board.fen()

    def pgn(self, board: chess.Board) -> str:
        game = chess.pgn.Game.from_board(board)
        exporter = chess.pgn.StringExporter(headers=False, variations=False, comments=False)
        text = game.accept(exporter)
        # Drop the trailing result marker of an unfinished game
        return text[:-1].rstrip() if text.endswith('*') else text

    def history(self, board: chess.Board) -> List[Dict[str, Any]]:
        replay = board.root()
        entries = []
        for move in board.move_stack:
            entries.append(self._describe(replay, move))
            replay.push(move)
        return entries

    def _describe(self, board: chess.Board, move: chess.Move) -> Dict[str, Optional[str]]:
        piece = board.piece_at(move.from_square)
        if board.is_en_passant(move):
            captured = 'p'
        else:
            victim = board.piece_at(move.to_square)
            captured = victim.symbol().lower() if victim and board.is_capture(move) else None
        return {
            'color': color_name(board.turn),
            'from': chess.square_name(move.from_square),
            'to': chess.square_name(move.to_square),
            'piece': piece.symbol().lower() if piece else None,
            'captured': captured,
            'promotion': chess.piece_symbol(move.promotion) if move.promotion else None,
            'san': board.san(move),
        }

from __future__ import annotations


# Client -> server
PLAYER_JOIN = "player:join"
PLAYER_LEAVE = "player:leave"
CHAT_MESSAGE = "chat:message"
GUESS_SUBMIT = "guess:submit"
DRAW_STROKE = "draw:stroke"
ROUND_CLEAR = "round:clear"
ROUND_START = "round:start"
ROUND_SKIP = "round:skip"
ROOM_CLOSE = "room:close"
GAME_RESTART = "game:restart"
ROOMS_REQUEST = "rooms:request"
ROOMS_SUBSCRIBE = "rooms:subscribe"

# Server -> client
ROOMS_LIST = "rooms:list"
ROOM_STATE = "room:state"
ROUND_WORD = "round:word"
ROUND_STARTED = "round:started"
ROUND_ENDED = "round:ended"
SCORE_UPDATE = "score:update"
GAME_OVER = "game:over"
PLAYER_JOIN_ERROR = "player:join:error"
ROOM_ERROR = "room:error"

# Group that rooms:subscribe joins
ROOMS_CHANNEL = "__rooms__"

SYSTEM_NAME = "System"

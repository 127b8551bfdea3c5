# Pydantic models and data structures for API IO and provider payloads.

from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional, Literal

LetterStatus = Literal["correct", "present", "absent"]
RoundMode = Literal["artist", "song"]
RoundSource = Literal["daily", "practice", "spotify"]
RoundStatus = Literal["playing", "won", "lost"]


class LetterFeedback(BaseModel):
    model_config = ConfigDict(frozen=True)

    letter: str
    status: LetterStatus


class GuessAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    guess: str
    feedback: List[LetterFeedback]


# --- provider data-transfer types ---

class Artist(BaseModel):
    id: str
    name: str
    hints: List[str] = Field(default_factory=list)
    photo: Optional[str] = None


class Song(BaseModel):
    id: str
    title: str
    artist: str
    album: str
    album_cover: Optional[str] = None
    preview: Optional[str] = None
    hints: List[str] = Field(default_factory=list)


class DeezerArtist(BaseModel):
    id: int
    name: str
    picture: Optional[str] = None
    picture_small: Optional[str] = None
    picture_medium: Optional[str] = None
    nb_fan: Optional[int] = None


class DeezerTrackArtist(BaseModel):
    id: int
    name: str


class DeezerAlbum(BaseModel):
    id: int
    title: str = ""
    cover: Optional[str] = None
    cover_small: Optional[str] = None
    cover_medium: Optional[str] = None


class DeezerTrack(BaseModel):
    id: int
    title: str
    duration: int = 0
    preview: Optional[str] = None
    artist: DeezerTrackArtist
    album: DeezerAlbum


class SpotifyImage(BaseModel):
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


class SpotifyArtist(BaseModel):
    id: str
    name: str
    images: List[SpotifyImage] = Field(default_factory=list)
    genres: List[str] = Field(default_factory=list)
    popularity: Optional[int] = None


class SpotifyTrack(BaseModel):
    id: str
    name: str
    artists: List[SpotifyArtist] = Field(default_factory=list)
    preview_url: Optional[str] = None


class SpotifyToken(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


# --- HTTP requests / responses ---

class StartRoundRequest(BaseModel):
    mode: RoundMode = "artist"
    source: RoundSource = "practice"
    artist: Optional[str] = Field(None, description="Required for song rounds")
    exclude: List[str] = Field(default_factory=list, description="Song ids already played")
    max_attempts: Optional[int] = Field(None, description="Defaults to the server setting")
    access_token: Optional[str] = Field(None, description="Spotify token for source=spotify")

    @field_validator("artist")
    @classmethod
    def strip_artist(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None


class StartRoundResponse(BaseModel):
    round_id: str
    token: str
    mode: RoundMode
    source: RoundSource
    max_attempts: int
    target_length: int
    hints: List[str]
    image: Optional[str] = None
    preview: Optional[str] = None
    artist: Optional[str] = None
    song_id: Optional[str] = None


class GuessRequest(BaseModel):
    round_id: str = Field(..., description="Round id")
    token: str = Field(..., description="Round token issued by server")
    guess: str = Field(..., description="Raw text typed by the player")


class GuessResponse(BaseModel):
    attempt: GuessAttempt
    status: RoundStatus
    attempts_used: int
    max_attempts: int
    answer: Optional[str] = None


class RoundStateResponse(BaseModel):
    round_id: str
    mode: RoundMode
    source: RoundSource
    status: RoundStatus
    max_attempts: int
    target_length: int
    attempts: List[GuessAttempt]
    hints: List[str]
    # Only once the round is over; otherwise omitted
    answer: Optional[str] = None


class ShareResponse(BaseModel):
    text: str


class SongsCountRequest(BaseModel):
    artist: Optional[str] = None


class TokenRequest(BaseModel):
    code: Optional[str] = None
    redirect_uri: Optional[str] = None


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class StatsResponse(BaseModel):
    played: int
    wins: int
    losses: int
    win_rate: float
    distribution: Dict[str, int]

"""HTTP API for driving the voice dispatcher from remote devices.

Clients either upload raw WAV audio (transcribed here with Whisper) or send
text they transcribed themselves. Spoken replies produced while handling a
request are returned in the response.
"""

import asyncio
import wave
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from trafficaz.assistant import build_dispatcher
from trafficaz.audio import wav_to_array
from trafficaz.config import Config, load_config
from trafficaz.dispatcher import VoiceDispatcher
from trafficaz.remote import RemoteRecognizer, SpeechLog


class TranscriptIn(BaseModel):
    text: str
    final: bool = True


class SettingsIn(BaseModel):
    language: Optional[str] = None
    pitch: Optional[float] = None
    rate: Optional[float] = None
    voice: Optional[str] = None


def create_app(
    dispatcher: Optional[VoiceDispatcher] = None,
    speech: Optional[SpeechLog] = None,
    config: Optional[Config] = None,
    whisper_model: Any = None,
) -> FastAPI:
    """Build the app. Without an injected dispatcher one is built from config.

    ``whisper_model`` is loaded on the first /voice request when not given.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or load_config()
        app.state.config = cfg
        app.state.speech = speech or SpeechLog()
        app.state.dispatcher = dispatcher or build_dispatcher(
            cfg, RemoteRecognizer(), app.state.speech
        )
        app.state.last_transcript = ""
        app.state.whisper = whisper_model
        await app.state.dispatcher.start()
        try:
            yield
        finally:
            await app.state.dispatcher.close()

    app = FastAPI(title="TrafficAZ Voice API", lifespan=lifespan)

    async def _feed(request: Request, text: str, final: bool) -> dict:
        voice: VoiceDispatcher = request.app.state.dispatcher
        log: SpeechLog = request.app.state.speech
        mark = log.mark()
        request.app.state.last_transcript = text
        voice.submit_transcript(text, final)
        await voice.join()
        return {"transcript": text, "spoken": log.since(mark), **voice.status()}

    @app.post("/voice")
    async def receive_voice(request: Request, file: UploadFile = File(...)) -> Any:
        """Receive a WAV audio file, transcribe it and feed it to the dispatcher."""
        if file.content_type not in ("audio/wav", "audio/x-wav"):
            raise HTTPException(status_code=400, detail="Only WAV audio is supported")
        content = await file.read()
        try:
            samples = wav_to_array(content)
        except (ValueError, EOFError, wave.Error) as exc:
            raise HTTPException(status_code=400, detail=f"Invalid WAV audio: {exc}")
        if request.app.state.whisper is None:
            import whisper

            request.app.state.whisper = whisper.load_model(request.app.state.config.whisper_model)
        model = request.app.state.whisper
        result = await asyncio.to_thread(model.transcribe, samples, fp16=False)
        text = result.get("text", "").strip()
        return JSONResponse(content=await _feed(request, text, True))

    @app.post("/transcript")
    async def receive_transcript(request: Request, body: TranscriptIn) -> Any:
        return JSONResponse(content=await _feed(request, body.text, body.final))

    @app.post("/start")
    async def start(request: Request) -> Any:
        log: SpeechLog = request.app.state.speech
        mark = log.mark()
        started = await request.app.state.dispatcher.start()
        return JSONResponse(
            content={"started": started, "spoken": log.since(mark), **request.app.state.dispatcher.status()}
        )

    @app.post("/stop")
    async def stop(request: Request) -> Any:
        await request.app.state.dispatcher.stop()
        return JSONResponse(content=request.app.state.dispatcher.status())

    @app.get("/status")
    async def status(request: Request) -> Any:
        return JSONResponse(content=request.app.state.dispatcher.status())

    @app.put("/settings")
    async def update_settings(request: Request, body: SettingsIn) -> Any:
        settings = request.app.state.dispatcher.set_voice_settings(**body.model_dump(exclude_unset=True))
        return JSONResponse(content=settings.as_dict())

    @app.get("/last_transcript")
    async def get_last_transcript(request: Request):
        return JSONResponse(content={"last_transcript": getattr(request.app.state, "last_transcript", "")})

    return app


app = create_app()

# If running directly, start the server (use uvicorn)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

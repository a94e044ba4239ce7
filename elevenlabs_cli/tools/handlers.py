"""
Operation Handlers
------------------
Per-operation functions that turn validated arguments into exactly one
API request.

Every handler has the signature `handler(client, args) -> payload` and
raises RemoteError on failure. Handlers are re-run by the retry layer,
so anything they open (upload files) is opened per attempt.
"""

from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union
from urllib.parse import quote
import base64
import json
import mimetypes

from elevenlabs_cli.core.errors import ArgumentError, RemoteError, RemoteErrorReason

from .registry import Handler

FieldMap = Union[Sequence[str], Mapping[str, str]]

MAX_FILE_SIZE = 100 * 1024 * 1024  # 100 MB upload limit


def _field_map(fields: Optional[FieldMap]) -> Dict[str, str]:
    """Normalise ('a', 'b') or {'a': 'wire_a'} into {arg_name: wire_name}."""
    if not fields:
        return {}
    if isinstance(fields, Mapping):
        return dict(fields)
    return {name: name for name in fields}


def _pick(args: Mapping[str, Any], fields: Dict[str, str]) -> Dict[str, Any]:
    return {wire: args[arg] for arg, wire in fields.items() if args.get(arg) is not None}


def fill_path(template: str, args: Mapping[str, Any]) -> str:
    """Substitute {placeholders} with URL-quoted argument values."""
    values = {key: quote(str(value), safe="") for key, value in args.items() if value is not None}
    try:
        return template.format(**values)
    except KeyError as e:
        raise ArgumentError(e.args[0], f"Missing path parameter: {e.args[0]}") from e


def deliver_audio(audio: bytes, args: Mapping[str, Any]) -> Dict[str, Any]:
    """Write audio to `output_file` if given, otherwise return it base64-encoded."""
    output_file = args.get("output_file")
    if output_file:
        path = Path(output_file).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(audio)
        except OSError as e:
            raise RemoteError(
                f"Could not write {path}: {e}",
                reason=RemoteErrorReason.LOCAL_IO,
            ) from e
        return {"output_file": str(path), "bytes": len(audio)}
    return {
        "audio_base64": base64.b64encode(audio).decode("ascii"),
        "bytes": len(audio),
    }


def _open_uploads(stack: ExitStack, field: str, paths: Iterable[str]) -> List[tuple]:
    uploads = []
    for raw in paths:
        path = Path(raw).expanduser()
        try:
            size = path.stat().st_size
            if size > MAX_FILE_SIZE:
                raise ArgumentError(field, f"File too large: {path} ({size} bytes, max {MAX_FILE_SIZE})")
            handle = stack.enter_context(open(path, "rb"))
        except OSError as e:
            raise RemoteError(f"Could not read {path}: {e}", reason=RemoteErrorReason.LOCAL_IO) from e
        mime = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        uploads.append((field, (path.name, handle, mime)))
    return uploads


def route(
    method: str,
    template: str,
    query: Optional[FieldMap] = None,
    body: Optional[FieldMap] = None,
    form: Optional[FieldMap] = None,
    files: Optional[FieldMap] = None,
    audio: bool = False,
    fixed_body: Optional[Dict[str, Any]] = None,
) -> Handler:
    """
    Build a handler for one endpoint.

    query/body/form/files map argument names to wire names; `files`
    arguments are local paths (or lists of paths) uploaded as multipart.
    """
    query_fields = _field_map(query)
    body_fields = _field_map(body)
    form_fields = _field_map(form)
    file_fields = _field_map(files)

    def handler(client, args: Dict[str, Any]) -> Any:
        path = fill_path(template, args)
        params = _pick(args, query_fields) or None

        json_body = None
        if body_fields or fixed_body:
            json_body = dict(fixed_body or {})
            json_body.update(_pick(args, body_fields))

        with ExitStack() as stack:
            upload = None
            data = None
            if file_fields or form_fields:
                data = {k: _form_value(v) for k, v in _pick(args, form_fields).items()}
                upload = []
                for arg, wire in file_fields.items():
                    value = args.get(arg)
                    if value is None:
                        continue
                    paths = value if isinstance(value, list) else [value]
                    upload.extend(_open_uploads(stack, wire, paths))

            result = client.request(
                method,
                path,
                params=params,
                json=json_body,
                data=data,
                files=upload or None,
                expect_bytes=audio,
            )

        if audio:
            return deliver_audio(result, args)
        return result if result is not None else {"status": "ok"}

    handler.__name__ = f"{method.lower()}:{template}"
    return handler


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# Handlers with request shapes that don't fit `route`

def _voice_settings(args: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    settings = _pick(args, {
        "stability": "stability",
        "similarity_boost": "similarity_boost",
        "style": "style",
    })
    if args.get("speaker_boost"):
        settings["use_speaker_boost"] = True
    return settings or None


def text_to_speech(client, args: Dict[str, Any]) -> Dict[str, Any]:
    body: Dict[str, Any] = {"text": args["text"], "model_id": args["model"]}
    settings = _voice_settings(args)
    if settings:
        body["voice_settings"] = settings

    audio = client.request(
        "POST",
        fill_path("/v1/text-to-speech/{voice}", args),
        params={"output_format": args["output_format"]},
        json=body,
        expect_bytes=True,
    )
    result = deliver_audio(audio, args)
    result.update({"voice": args["voice"], "model": args["model"]})
    return result


def edit_voice_settings(client, args: Dict[str, Any]) -> Any:
    settings = _voice_settings(args) or {}
    if not settings:
        raise ArgumentError(
            "stability",
            "At least one of stability, similarity_boost, style or speaker_boost is required",
        )
    result = client.request(
        "POST",
        fill_path("/v1/voices/{voice_id}/settings/edit", args),
        json=settings,
    )
    return result if result is not None else {"status": "ok"}


def create_dialogue(client, args: Dict[str, Any]) -> Dict[str, Any]:
    """`inputs` is a list of {"text": ..., "voice_id": ...} objects."""
    inputs = args["inputs"]
    for index, item in enumerate(inputs):
        if not isinstance(item, dict) or not item.get("text") or not item.get("voice_id"):
            raise ArgumentError("inputs", f"inputs[{index}] must have 'text' and 'voice_id'")
    audio = client.request(
        "POST",
        "/v1/text-to-dialogue",
        params={"output_format": args.get("output_format")},
        json={"inputs": inputs, "model_id": args["model"]},
        expect_bytes=True,
    )
    return deliver_audio(audio, args)


def get_usage(client, args: Dict[str, Any]) -> Any:
    """start/end are unix seconds; the API expects milliseconds."""
    params = {
        "start_unix": int(args["start"]) * 1000,
        "end_unix": int(args["end"]) * 1000,
    }
    return client.request("GET", "/v1/usage/character-stats", params=params)


def history_feedback(client, args: Dict[str, Any]) -> Any:
    body = {"thumbs_up": args["thumbs_up"], "feedback": args.get("feedback", "")}
    result = client.request(
        "POST",
        fill_path("/v1/history/{history_item_id}/feedback", args),
        json=body,
    )
    return result if result is not None else {"status": "ok"}


def list_samples(client, args: Dict[str, Any]) -> Dict[str, Any]:
    voice = client.request("GET", fill_path("/v1/voices/{voice_id}", args)) or {}
    return {"voice_id": args["voice_id"], "samples": voice.get("samples") or []}


def _agent_body(args: Mapping[str, Any]) -> Dict[str, Any]:
    body = _pick(args, {"name": "name", "description": "description"})
    agent = _pick(args, {"first_message": "first_message", "language": "language"})
    if args.get("system_prompt"):
        agent["prompt"] = {"prompt": args["system_prompt"]}
    conversation_config: Dict[str, Any] = {}
    if agent:
        conversation_config["agent"] = agent
    if args.get("voice_id"):
        conversation_config["tts"] = {"voice_id": args["voice_id"]}
    if conversation_config:
        body["conversation_config"] = conversation_config
    return body


def create_agent(client, args: Dict[str, Any]) -> Any:
    return client.request("POST", "/v1/convai/agents/create", json=_agent_body(args))


def update_agent(client, args: Dict[str, Any]) -> Any:
    body = _agent_body(args)
    if not body:
        raise ArgumentError("name", "Nothing to update: pass at least one agent field")
    result = client.request("PATCH", fill_path("/v1/convai/agents/{agent_id}", args), json=body)
    return result if result is not None else {"status": "ok"}


def add_knowledge(client, args: Dict[str, Any]) -> Any:
    """Add a URL, inline text or a local text file to the knowledge base."""
    source_type = args["source_type"]
    body: Dict[str, Any] = {"name": args.get("name") or ""}

    if source_type == "url":
        if not args.get("url"):
            raise ArgumentError("url", "url is required when source_type is 'url'")
        body.update({"type": "url", "url": args["url"]})
    elif source_type == "text":
        if not args.get("content"):
            raise ArgumentError("content", "content is required when source_type is 'text'")
        body.update({"type": "text", "content": args["content"]})
    else:
        if not args.get("file"):
            raise ArgumentError("file", "file is required when source_type is 'file'")
        path = Path(args["file"]).expanduser()
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise RemoteError(f"Could not read {path}: {e}", reason=RemoteErrorReason.LOCAL_IO) from e
        body.update({"type": "text", "content": content, "name": body["name"] or path.name})

    if args.get("description"):
        body["description"] = args["description"]
    return client.request("POST", "/v1/convai/knowledge-base", json=body)


def create_voice_design(client, args: Dict[str, Any]) -> Any:
    """Generate voice previews from a description. Sample text is 100-1000 characters."""
    text = args["text"]
    if not 100 <= len(text) <= 1000:
        raise ArgumentError("text", f"text must be 100-1000 characters long (got {len(text)})")
    return client.request(
        "POST",
        "/v1/text-to-voice/create-previews",
        json={"voice_description": args["description"], "text": text},
    )


def get_similar_voices(client, args: Dict[str, Any]) -> Any:
    params = _pick(args, {"voice_id": "voice_id", "text": "text"})
    if not params:
        raise ArgumentError("voice_id", "Pass voice_id or text to compare against")
    return client.request("GET", "/v1/voices/similar", params=params)


def get_model_rates(client, args: Dict[str, Any]) -> Dict[str, Any]:
    models = client.request("GET", "/v1/models") or []
    for model in models:
        if model.get("model_id") == args["model_id"]:
            return {"model_id": args["model_id"], "model_rates": model.get("model_rates") or {}}
    raise ArgumentError("model_id", f"Unknown model: {args['model_id']}")


def add_pronunciation(client, args: Dict[str, Any]) -> Any:
    """One rule: a phoneme (with alphabet) or an alias replacement for `word`."""
    rule: Dict[str, Any] = {"string_to_replace": args["word"]}
    if args.get("phoneme"):
        rule.update({"type": "phoneme", "phoneme": args["phoneme"], "alphabet": args["alphabet"]})
    elif args.get("alias"):
        rule.update({"type": "alias", "alias": args["alias"]})
    else:
        raise ArgumentError("phoneme", "Pass either phoneme or alias")
    result = client.request(
        "POST",
        fill_path("/v1/pronunciation-dictionaries/{dictionary_id}/add-rules", args),
        json={"rules": [rule]},
    )
    return result if result is not None else {"status": "ok"}


def add_pronunciation_rules(client, args: Dict[str, Any]) -> Any:
    """`rules_file` holds a JSON list of rules, or an object with a "rules" list."""
    path = Path(args["rules_file"]).expanduser()
    try:
        loaded = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise RemoteError(f"Could not read {path}: {e}", reason=RemoteErrorReason.LOCAL_IO) from e
    except ValueError as e:
        raise ArgumentError("rules_file", f"{path} is not valid JSON: {e}") from e

    rules = loaded.get("rules") if isinstance(loaded, dict) else loaded
    if not isinstance(rules, list) or not rules:
        raise ArgumentError("rules_file", f"{path} must contain a non-empty list of rules")
    result = client.request(
        "POST",
        fill_path("/v1/pronunciation-dictionaries/{dictionary_id}/add-rules", args),
        json={"rules": rules},
    )
    return result if result is not None else {"status": "ok"}


def get_pronunciation_pls(client, args: Dict[str, Any]) -> Dict[str, Any]:
    data = client.request(
        "GET",
        fill_path("/v1/pronunciation/dictionaries/{dictionary_id}/pls", args),
        expect_bytes=True,
    )
    if args.get("output_file"):
        return deliver_audio(data, args)
    return {"dictionary_id": args["dictionary_id"], "pls": data.decode("utf-8", errors="replace")}


def import_phone(client, args: Dict[str, Any]) -> Any:
    """Twilio numbers need account SID and token; SIP trunks need a URI."""
    body: Dict[str, Any] = {"phone_number": args["number"]}
    if args.get("label"):
        body["label"] = args["label"]

    if args["provider"] == "twilio":
        for name in ("twilio_sid", "twilio_token"):
            if not args.get(name):
                raise ArgumentError(name, f"{name} is required for Twilio numbers")
        body["provider"] = {
            "type": "twilio",
            "twilio_sid": args["twilio_sid"],
            "twilio_token": args["twilio_token"],
        }
    else:
        if not args.get("sip_uri"):
            raise ArgumentError("sip_uri", "sip_uri is required for SIP trunk numbers")
        body["provider"] = {"type": "sip_trunk", "sip_uri": args["sip_uri"]}

    return client.request("POST", "/v1/convai/phone-numbers", json=body)


def converse_chat(client, args: Dict[str, Any]) -> Any:
    """Send one text message to an agent and return the simulated exchange."""
    body = {
        "messages": [{"role": "user", "content": args["message"]}],
        "max_turns": args["max_turns"],
    }
    return client.request("POST", fill_path("/v1/convai/agents/{agent_id}/simulate", args), json=body)

"""
Default Operation Catalog
-------------------------
Every ElevenLabs operation exposed to the CLI and to agent clients.

Category rules:
- SAFE: reads, listings and pure generation (nothing persistent changes)
- ADMIN: creates, edits, invites, imports or converts a remote resource
- DESTRUCTIVE: deletes, removes or revokes a remote resource

Idempotency: creations are not idempotent (a retried POST can create a
duplicate). Reads, deletes, edits that set state and generation are.
"""

from typing import List, Optional

from .registry import (
    CatalogBuilder, OperationCatalog, OperationCategory, ParameterType, ToolParameter,
)
from .handlers import (
    route, text_to_speech, edit_voice_settings, create_dialogue, get_usage,
    history_feedback, list_samples, create_agent, update_agent, add_knowledge,
    create_voice_design, get_similar_voices, get_model_rates, add_pronunciation,
    add_pronunciation_rules, get_pronunciation_pls, import_phone, converse_chat,
)

SAFE = OperationCategory.SAFE
ADMIN = OperationCategory.ADMIN
DESTRUCTIVE = OperationCategory.DESTRUCTIVE

DEFAULT_TTS_MODEL = "eleven_multilingual_v2"
DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"
DEFAULT_STT_MODEL = "scribe_v1"
DEFAULT_STS_MODEL = "eleven_multilingual_sts_v2"
DEFAULT_DIALOGUE_MODEL = "eleven_v3"

OUTPUT_FORMATS = (
    "mp3_22050_32", "mp3_44100_64", "mp3_44100_96", "mp3_44100_128", "mp3_44100_192",
    "pcm_16000", "pcm_22050", "pcm_24000", "pcm_44100",
    "ulaw_8000", "opus_48000_64",
)


# Parameter shorthands

def _str(name: str, description: str, required: bool = True, default: Optional[str] = None,
         enum: Optional[tuple] = None) -> ToolParameter:
    return ToolParameter(
        name=name,
        type=ParameterType.STRING,
        description=description,
        required=required,
        default=default,
        enum=enum,
    )


def _int(name: str, description: str, required: bool = False, default: Optional[int] = None,
         min_value: Optional[float] = None, max_value: Optional[float] = None) -> ToolParameter:
    return ToolParameter(
        name=name,
        type=ParameterType.INTEGER,
        description=description,
        required=required,
        default=default,
        min_value=min_value,
        max_value=max_value,
    )


def _num(name: str, description: str, min_value: float = 0.0, max_value: float = 1.0) -> ToolParameter:
    return ToolParameter(
        name=name,
        type=ParameterType.NUMBER,
        description=description,
        required=False,
        min_value=min_value,
        max_value=max_value,
    )


def _bool(name: str, description: str, default: Optional[bool] = None) -> ToolParameter:
    return ToolParameter(
        name=name,
        type=ParameterType.BOOLEAN,
        description=description,
        required=False,
        default=default,
    )


def _file(name: str, description: str, required: bool = True) -> ToolParameter:
    return ToolParameter(
        name=name,
        type=ParameterType.STRING,
        description=description,
        required=required,
        local_file=True,
    )


def _output_file() -> ToolParameter:
    return _str("output_file", "Where to save the audio (base64 is returned if omitted)", required=False)


def _page_size(default: int = 30, max_value: int = 100) -> ToolParameter:
    return _int("limit", "Maximum number of items to return", default=default,
                min_value=1, max_value=max_value)


def _voice_settings_params() -> List[ToolParameter]:
    return [
        _num("stability", "Voice stability (0.0-1.0)"),
        _num("similarity_boost", "Similarity boost (0.0-1.0)"),
        _num("style", "Style exaggeration (0.0-1.0)"),
        _bool("speaker_boost", "Enable speaker boost"),
    ]


def _register_audio(builder: CatalogBuilder) -> None:
    builder.add(
        "text_to_speech",
        "Convert text to speech audio",
        SAFE,
        text_to_speech,
        [
            _str("text", "Text to convert to speech"),
            _str("voice", "Voice ID to use"),
            _str("model", "Model ID", required=False, default=DEFAULT_TTS_MODEL),
            _str("output_format", "Audio output format", required=False,
                 default=DEFAULT_OUTPUT_FORMAT, enum=OUTPUT_FORMATS),
            *_voice_settings_params(),
            _output_file(),
        ],
        group="audio",
    )
    builder.add(
        "speech_to_text",
        "Transcribe an audio file to text",
        SAFE,
        route(
            "POST", "/v1/speech-to-text",
            form={
                "model": "model_id",
                "language": "language_code",
                "diarize": "diarize",
                "num_speakers": "num_speakers",
                "timestamps": "timestamps_granularity",
            },
            files={"file": "file"},
        ),
        [
            _file("file", "Audio file to transcribe"),
            _str("model", "Transcription model", required=False, default=DEFAULT_STT_MODEL,
                 enum=("scribe_v1", "scribe_v1_experimental")),
            _str("language", "ISO language code (auto-detected if omitted)", required=False),
            _bool("diarize", "Identify speakers"),
            _int("num_speakers", "Expected number of speakers", min_value=1, max_value=32),
            _str("timestamps", "Timestamp granularity", required=False, default="word",
                 enum=("none", "word", "character")),
        ],
        group="audio",
    )
    builder.add(
        "generate_sfx",
        "Generate a sound effect from a text description",
        SAFE,
        route("POST", "/v1/sound-generation",
              body={"text": "text", "duration": "duration_seconds"}, audio=True),
        [
            _str("text", "Description of the sound effect"),
            _num("duration", "Duration in seconds (0.5-22)", min_value=0.5, max_value=22.0),
            _output_file(),
        ],
        group="audio",
    )
    builder.add(
        "audio_isolation",
        "Remove background noise from an audio file",
        SAFE,
        route("POST", "/v1/audio-isolation", files={"file": "audio"}, audio=True),
        [_file("file", "Audio file to clean up"), _output_file()],
        group="audio",
    )
    builder.add(
        "voice_changer",
        "Re-voice an audio file with a different voice",
        SAFE,
        route("POST", "/v1/speech-to-speech/{voice}",
              form={"model": "model_id"}, files={"file": "audio"}, audio=True),
        [
            _file("file", "Source audio file"),
            _str("voice", "Target voice ID"),
            _str("model", "Speech-to-speech model", required=False, default=DEFAULT_STS_MODEL),
            _output_file(),
        ],
        group="audio",
    )
    builder.add(
        "create_dialogue",
        "Generate multi-speaker dialogue audio",
        SAFE,
        create_dialogue,
        [
            ToolParameter(
                name="inputs",
                type=ParameterType.ARRAY,
                description='Dialogue lines: [{"text": ..., "voice_id": ...}, ...]',
                items=ParameterType.OBJECT,
            ),
            _str("model", "Dialogue model", required=False, default=DEFAULT_DIALOGUE_MODEL),
            _str("output_format", "Audio output format", required=False,
                 default=DEFAULT_OUTPUT_FORMAT, enum=OUTPUT_FORMATS),
            _output_file(),
        ],
        group="audio",
    )
    builder.add(
        "generate_music",
        "Compose music from a text prompt",
        SAFE,
        route("POST", "/v1/music",
              body={"prompt": "prompt", "duration_ms": "music_length_ms"}, audio=True),
        [
            _str("prompt", "Description of the music"),
            _int("duration_ms", "Length in milliseconds", min_value=10000, max_value=300000),
            _output_file(),
        ],
        group="audio",
    )


def _register_music(builder: CatalogBuilder) -> None:
    music_id = _str("music_id", "Music track ID")

    builder.add("list_music", "List generated music", SAFE,
                route("GET", "/v1/music", query={"limit": "page_size"}), [_page_size()], group="music")
    builder.add("get_music", "Get a generated music track", SAFE,
                route("GET", "/v1/music/{music_id}"), [music_id], group="music")
    builder.add("download_music", "Download the audio of a music track", SAFE,
                route("GET", "/v1/music/{music_id}/audio", audio=True),
                [music_id, _output_file()], group="music")
    builder.add("delete_music", "Delete a generated music track", DESTRUCTIVE,
                route("DELETE", "/v1/music/{music_id}"), [music_id], group="music")


def _register_voices(builder: CatalogBuilder) -> None:
    voice_id = _str("voice_id", "Voice ID")

    builder.add("list_voices", "List all available voices", SAFE,
                route("GET", "/v1/voices"), group="voice")
    builder.add("get_voice", "Get details of a voice", SAFE,
                route("GET", "/v1/voices/{voice_id}"), [voice_id], group="voice")
    builder.add("delete_voice", "Delete a voice", DESTRUCTIVE,
                route("DELETE", "/v1/voices/{voice_id}"), [voice_id], group="voice")
    builder.add(
        "clone_voice",
        "Create an instant voice clone from audio samples",
        ADMIN,
        route("POST", "/v1/voices/add",
              form=("name", "description", "remove_background_noise"),
              files={"samples": "files"}),
        [
            _str("name", "Name for the new voice"),
            ToolParameter(
                name="samples",
                type=ParameterType.ARRAY,
                description="Local audio files to clone from",
                items=ParameterType.STRING,
                local_file=True,
            ),
            _str("description", "Voice description", required=False),
            _bool("remove_background_noise", "Clean samples before cloning"),
        ],
        idempotent=False,
        group="voice",
    )
    builder.add("voice_settings", "Get the settings of a voice", SAFE,
                route("GET", "/v1/voices/{voice_id}/settings"), [voice_id], group="voice")
    builder.add("edit_voice_settings", "Change the settings of a voice", ADMIN,
                edit_voice_settings, [voice_id, *_voice_settings_params()], group="voice")
    builder.add("list_samples", "List the samples of a voice", SAFE,
                list_samples, [voice_id], group="voice")
    builder.add(
        "delete_sample", "Delete a sample from a voice", DESTRUCTIVE,
        route("DELETE", "/v1/voices/{voice_id}/samples/{sample_id}"),
        [voice_id, _str("sample_id", "Sample ID")],
        group="voice",
    )
    builder.add(
        "create_voice_design", "Generate voice previews from a text description", SAFE,
        create_voice_design,
        [
            _str("description", "Description of the voice to design"),
            _str("text", "Sample text the previews speak (100-1000 characters)"),
        ],
        group="voice",
    )
    builder.add(
        "get_voice_design", "Download the audio of a generated voice preview", SAFE,
        route("GET", "/v1/text-to-voice/{generated_voice_id}/stream", audio=True),
        [_str("generated_voice_id", "Generated voice ID from create_voice_design"), _output_file()],
        group="voice",
    )
    builder.add(
        "start_voice_fine_tune", "Start fine-tuning a voice", ADMIN,
        route("POST", "/v1/voices/{voice_id}/fine-tune", body=("name", "description")),
        [
            voice_id,
            _str("name", "Name for the fine-tuned voice"),
            _str("description", "Description of the fine-tuned voice", required=False),
        ],
        idempotent=False,
        group="voice",
    )
    builder.add("get_voice_fine_tune_status", "Get the fine-tuning status of a voice", SAFE,
                route("GET", "/v1/voices/{voice_id}/fine-tune"), [voice_id], group="voice")
    builder.add("cancel_voice_fine_tune", "Cancel fine-tuning of a voice", DESTRUCTIVE,
                route("DELETE", "/v1/voices/{voice_id}/fine-tune"), [voice_id], group="voice")
    builder.add("share_voice", "Share a voice in the public library", ADMIN,
                route("POST", "/v1/voices/{voice_id}/share"), [voice_id], group="voice")
    builder.add(
        "get_similar_voices", "Find voices similar to a voice or a description", SAFE,
        get_similar_voices,
        [
            _str("voice_id", "Voice to compare against", required=False),
            _str("text", "Description to compare against", required=False),
        ],
        group="voice",
    )


def _register_library(builder: CatalogBuilder) -> None:
    builder.add(
        "list_library_voices",
        "Browse the shared voice library",
        SAFE,
        route("GET", "/v1/shared-voices",
              query={"limit": "page_size", "search": "search", "gender": "gender",
                     "language": "language", "category": "category"}),
        [
            _page_size(),
            _str("search", "Search term", required=False),
            _str("gender", "Filter by gender", required=False),
            _str("language", "Filter by language", required=False),
            _str("category", "Filter by category", required=False),
        ],
        group="library",
    )
    builder.add(
        "list_library_collections",
        "List voice collections",
        SAFE,
        route("GET", "/v1/voices/collections", query={"limit": "page_size"}),
        [_page_size()],
        group="library",
    )


def _register_dubbing(builder: CatalogBuilder) -> None:
    dubbing_id = _str("dubbing_id", "Dubbing project ID")

    builder.add(
        "create_dubbing",
        "Dub an audio or video file into another language",
        ADMIN,
        route("POST", "/v1/dubbing",
              form=("source_lang", "target_lang", "name", "num_speakers"),
              files={"file": "file"}),
        [
            _file("file", "Audio or video file to dub"),
            _str("source_lang", "Source language code", required=False, default="auto"),
            _str("target_lang", "Target language code"),
            _str("name", "Project name", required=False),
            _int("num_speakers", "Number of speakers (0 to detect)", min_value=0),
        ],
        idempotent=False,
        group="dubbing",
    )
    builder.add("get_dubbing_status", "Get the status of a dubbing project", SAFE,
                route("GET", "/v1/dubbing/{dubbing_id}"), [dubbing_id], group="dubbing")
    builder.add(
        "get_dubbed_audio", "Download dubbed audio for one language", SAFE,
        route("GET", "/v1/dubbing/{dubbing_id}/audio/{language_code}", audio=True),
        [dubbing_id, _str("language_code", "Target language code"), _output_file()],
        group="dubbing",
    )
    builder.add("delete_dubbing", "Delete a dubbing project", DESTRUCTIVE,
                route("DELETE", "/v1/dubbing/{dubbing_id}"), [dubbing_id], group="dubbing")


def _register_history(builder: CatalogBuilder) -> None:
    item_id = _str("history_item_id", "History item ID")

    builder.add(
        "list_history", "List generation history", SAFE,
        route("GET", "/v1/history", query={"limit": "page_size", "voice_id": "voice_id"}),
        [_page_size(default=10, max_value=1000), _str("voice_id", "Filter by voice", required=False)],
        group="history",
    )
    builder.add("get_history_item", "Get a history item", SAFE,
                route("GET", "/v1/history/{history_item_id}"), [item_id], group="history")
    builder.add("delete_history_item", "Delete a history item", DESTRUCTIVE,
                route("DELETE", "/v1/history/{history_item_id}"), [item_id], group="history")
    builder.add(
        "history_feedback", "Leave feedback on a history item", ADMIN,
        history_feedback,
        [
            item_id,
            ToolParameter(name="thumbs_up", type=ParameterType.BOOLEAN,
                          description="Positive (true) or negative (false) feedback"),
            _str("feedback", "Free-text feedback", required=False),
        ],
        group="history",
    )
    builder.add(
        "download_history", "Download the audio of a history item", SAFE,
        route("GET", "/v1/history/{history_item_id}/audio", audio=True),
        [item_id, _output_file()],
        group="history",
    )


def _register_agents(builder: CatalogBuilder) -> None:
    agent_id = _str("agent_id", "Agent ID")
    agent_fields = [
        _str("description", "Agent description", required=False),
        _str("first_message", "First message the agent says", required=False),
        _str("system_prompt", "System prompt", required=False),
        _str("voice_id", "Voice ID for the agent", required=False),
        _str("language", "Language code", required=False),
    ]

    builder.add(
        "list_agents", "List conversational AI agents", SAFE,
        route("GET", "/v1/convai/agents", query={"limit": "page_size", "search": "search"}),
        [_page_size(), _str("search", "Search by name", required=False)],
        group="agents",
    )
    builder.add("get_agent", "Get an agent", SAFE,
                route("GET", "/v1/convai/agents/{agent_id}"), [agent_id], group="agents")
    builder.add("create_agent", "Create a conversational AI agent", ADMIN,
                create_agent, [_str("name", "Agent name"), *agent_fields],
                idempotent=False, group="agents")
    builder.add("update_agent", "Update an agent", ADMIN,
                update_agent,
                [agent_id, _str("name", "New agent name", required=False), *agent_fields],
                group="agents")
    builder.add("delete_agent", "Delete an agent", DESTRUCTIVE,
                route("DELETE", "/v1/convai/agents/{agent_id}"), [agent_id], group="agents")
    builder.add(
        "get_signed_url", "Get a signed URL for starting a conversation", SAFE,
        route("GET", "/v1/convai/conversation/get-signed-url", query=("agent_id",)),
        [agent_id],
        group="agents",
    )
    builder.add("get_agent_summaries", "List a short summary of every agent", SAFE,
                route("GET", "/v1/convai/agents/summaries"), group="agents")
    builder.add("agent_branches", "List the branches of an agent", SAFE,
                route("GET", "/v1/convai/agents/{agent_id}/branches"), [agent_id], group="agents")
    builder.add("batch_list", "List batch calling jobs", SAFE,
                route("GET", "/v1/convai/batch-calling"), group="agents")
    builder.add(
        "converse_chat", "Send a text message to an agent and get its replies", SAFE,
        converse_chat,
        [
            agent_id,
            _str("message", "Message to send"),
            _int("max_turns", "Maximum conversation turns", default=5, min_value=1, max_value=50),
        ],
        group="agents",
    )


def _register_conversations(builder: CatalogBuilder) -> None:
    conversation_id = _str("conversation_id", "Conversation ID")

    builder.add(
        "list_conversations", "List agent conversations", SAFE,
        route("GET", "/v1/convai/conversations",
              query={"agent_id": "agent_id", "limit": "page_size"}),
        [_str("agent_id", "Filter by agent", required=False), _page_size()],
        group="conversations",
    )
    builder.add("get_conversation", "Get a conversation with its transcript", SAFE,
                route("GET", "/v1/convai/conversations/{conversation_id}"),
                [conversation_id], group="conversations")
    builder.add("delete_conversation", "Delete a conversation", DESTRUCTIVE,
                route("DELETE", "/v1/convai/conversations/{conversation_id}"),
                [conversation_id], group="conversations")
    builder.add("get_conversation_audio", "Download the audio of a conversation", SAFE,
                route("GET", "/v1/convai/conversations/{conversation_id}/audio", audio=True),
                [conversation_id, _output_file()], group="conversations")
    builder.add(
        "get_conversation_token", "Get a token for starting a conversation with an agent", SAFE,
        route("GET", "/v1/convai/conversation/token", query=("agent_id",)),
        [_str("agent_id", "Agent ID")],
        group="conversations",
    )


def _register_knowledge(builder: CatalogBuilder) -> None:
    document_id = _str("document_id", "Knowledge base document ID")

    builder.add(
        "list_knowledge", "List knowledge base documents", SAFE,
        route("GET", "/v1/convai/knowledge-base", query={"limit": "page_size", "search": "search"}),
        [_page_size(), _str("search", "Search by name", required=False)],
        group="knowledge",
    )
    builder.add(
        "add_knowledge", "Add a document to the knowledge base", ADMIN,
        add_knowledge,
        [
            _str("source_type", "Where the document comes from", enum=("url", "text", "file")),
            _str("name", "Document name", required=False),
            _str("url", "Source URL (source_type=url)", required=False),
            _str("content", "Document text (source_type=text)", required=False),
            _file("file", "Local text file (source_type=file)", required=False),
            _str("description", "Document description", required=False),
        ],
        idempotent=False,
        group="knowledge",
    )
    builder.add("get_knowledge", "Get a knowledge base document", SAFE,
                route("GET", "/v1/convai/knowledge-base/{document_id}"),
                [document_id], group="knowledge")
    builder.add("delete_knowledge", "Delete a knowledge base document", DESTRUCTIVE,
                route("DELETE", "/v1/convai/knowledge-base/{document_id}"),
                [document_id], group="knowledge")

    rag_index_id = _str("rag_index_id", "RAG index ID")
    builder.add(
        "create_rag", "Create a RAG index for a document", ADMIN,
        route("POST", "/v1/convai/knowledge-base/{document_id}/rag-index", body=("model",)),
        [document_id, _str("model", "Embedding model", required=False,
                           default="e5_mistral_7b_instruct")],
        idempotent=False,
        group="knowledge",
    )
    builder.add("get_rag_status", "Get the status of a RAG index", SAFE,
                route("GET", "/v1/convai/knowledge-base/{document_id}/rag-index/{rag_index_id}"),
                [document_id, rag_index_id], group="knowledge")
    builder.add("delete_rag", "Delete a RAG index", DESTRUCTIVE,
                route("DELETE", "/v1/convai/knowledge-base/{document_id}/rag-index/{rag_index_id}"),
                [document_id, rag_index_id], group="knowledge")
    builder.add("rebuild_rag", "Rebuild the RAG index of a document", ADMIN,
                route("POST", "/v1/convai/knowledge-base/{document_id}/rebuild-index"),
                [document_id], group="knowledge")
    builder.add("get_rag_index_status", "Get the indexing status of a document", SAFE,
                route("GET", "/v1/convai/knowledge-base/{document_id}/index-status"),
                [document_id], group="knowledge")


def _register_account(builder: CatalogBuilder) -> None:
    builder.add("get_user_info", "Get account information", SAFE,
                route("GET", "/v1/user"), group="account")
    builder.add("get_user_subscription", "Get subscription details and quota", SAFE,
                route("GET", "/v1/user/subscription"), group="account")
    builder.add("list_models", "List available models", SAFE,
                route("GET", "/v1/models"), group="account")
    builder.add("get_model_rates", "Get the cost multipliers of a model", SAFE,
                get_model_rates, [_str("model_id", "Model ID")], group="account")
    builder.add(
        "get_usage", "Get character usage between two dates", SAFE,
        get_usage,
        [
            _int("start", "Start time (unix seconds)", required=True, min_value=0),
            _int("end", "End time (unix seconds)", required=True, min_value=0),
        ],
        group="account",
    )

    webhook_id = _str("webhook_id", "Webhook ID")
    builder.add("list_webhooks", "List workspace webhooks", SAFE,
                route("GET", "/v1/workspace/webhooks"), group="webhooks")
    builder.add(
        "create_webhook", "Create a webhook", ADMIN,
        route("POST", "/v1/workspace/webhooks", body=("name", "url", "events")),
        [
            _str("name", "Webhook name"),
            _str("url", "Callback URL"),
            ToolParameter(name="events", type=ParameterType.ARRAY,
                          description="Event types to subscribe to",
                          required=False, items=ParameterType.STRING),
        ],
        idempotent=False,
        group="webhooks",
    )
    builder.add("delete_webhook", "Delete a webhook", DESTRUCTIVE,
                route("DELETE", "/v1/workspace/webhooks/{webhook_id}"),
                [webhook_id], group="webhooks")


def _register_pronunciation(builder: CatalogBuilder) -> None:
    dictionary_id = _str("dictionary_id", "Pronunciation dictionary ID")

    builder.add(
        "list_pronunciations", "List pronunciation dictionaries", SAFE,
        route("GET", "/v1/pronunciation-dictionaries", query={"limit": "page_size"}),
        [_page_size()],
        group="pronunciation",
    )
    builder.add("get_pronunciation_rules", "Get the rules of a pronunciation dictionary", SAFE,
                route("GET", "/v1/pronunciation-dictionaries/{dictionary_id}"),
                [dictionary_id], group="pronunciation")
    builder.add(
        "remove_pronunciation_rules", "Remove rules from a pronunciation dictionary", DESTRUCTIVE,
        route("POST", "/v1/pronunciation-dictionaries/{dictionary_id}/remove-rules",
              body=("rule_strings",)),
        [
            dictionary_id,
            ToolParameter(name="rule_strings", type=ParameterType.ARRAY,
                          description="Strings whose rules should be removed",
                          items=ParameterType.STRING),
        ],
        group="pronunciation",
    )
    builder.add("delete_pronunciation", "Delete a pronunciation dictionary", DESTRUCTIVE,
                route("DELETE", "/v1/pronunciation-dictionaries/{dictionary_id}"),
                [dictionary_id], group="pronunciation")
    builder.add(
        "add_pronunciation", "Add a pronunciation rule for one word", ADMIN,
        add_pronunciation,
        [
            dictionary_id,
            _str("word", "Word or phrase to replace"),
            _str("phoneme", "Phonetic spelling (phoneme rule)", required=False),
            _str("alphabet", "Phonetic alphabet of the phoneme", required=False, default="ipa",
                 enum=("ipa", "cmu-arpabet")),
            _str("alias", "Replacement text (alias rule)", required=False),
        ],
        group="pronunciation",
    )
    builder.add("list_pronunciation_rules", "List the rules of a pronunciation dictionary", SAFE,
                route("GET", "/v1/pronunciation/dictionaries/{dictionary_id}/rules"),
                [dictionary_id], group="pronunciation")
    builder.add(
        "add_pronunciation_rules", "Add rules from a JSON file to a pronunciation dictionary", ADMIN,
        add_pronunciation_rules,
        [dictionary_id, _file("rules_file", "JSON file with a list of rules")],
        group="pronunciation",
    )
    builder.add(
        "get_pronunciation_pls", "Download a pronunciation dictionary as a PLS document", SAFE,
        get_pronunciation_pls,
        [dictionary_id, _str("output_file", "Where to save the PLS file (returned inline if omitted)",
                             required=False)],
        group="pronunciation",
    )


def _register_workspace(builder: CatalogBuilder) -> None:
    builder.add("list_workspace_members", "List workspace members", SAFE,
                route("GET", "/v1/workspace/members"), group="workspace")
    builder.add(
        "invite_workspace_member", "Invite a user to the workspace", ADMIN,
        route("POST", "/v1/workspace/invites/add", body=("email", "group_ids")),
        [
            _str("email", "Email address to invite"),
            ToolParameter(name="group_ids", type=ParameterType.ARRAY,
                          description="Workspace groups to add the user to",
                          required=False, items=ParameterType.STRING),
        ],
        idempotent=False,
        group="workspace",
    )
    builder.add(
        "revoke_workspace_invite", "Revoke a pending workspace invitation", DESTRUCTIVE,
        route("DELETE", "/v1/workspace/invites", body=("email",)),
        [_str("email", "Email address of the invitation")],
        group="workspace",
    )
    builder.add("workspace_info", "Get workspace information", SAFE,
                route("GET", "/v1/workspace"), group="workspace")
    builder.add("list_workspace_invites", "List pending workspace invitations", SAFE,
                route("GET", "/v1/workspace/invites"), group="workspace")
    builder.add("list_workspace_api_keys", "List workspace API keys", SAFE,
                route("GET", "/v1/workspace/api-keys"), group="workspace")
    builder.add(
        "share_workspace", "Share a workspace resource with the workspace", ADMIN,
        route("POST", "/v1/convai/workspaces/shares",
              body=("resource_type", "resource_id", "share_option")),
        [
            _str("resource_type", "Kind of resource",
                 enum=("agent", "knowledge_base", "flow", "prompt", "model", "voice")),
            _str("resource_id", "Resource ID"),
            _str("share_option", "Access level", required=False, default="viewer",
                 enum=("viewer", "editor")),
        ],
        group="workspace",
    )

    builder.add("list_secrets", "List workspace secrets", SAFE,
                route("GET", "/v1/convai/secrets"), group="secrets")
    builder.add(
        "add_secret", "Store a workspace secret", ADMIN,
        route("POST", "/v1/convai/secrets", body=("name", "value"), fixed_body={"type": "new"}),
        [_str("name", "Secret name"), _str("value", "Secret value")],
        idempotent=False,
        group="secrets",
    )
    builder.add("delete_secret", "Delete a workspace secret", DESTRUCTIVE,
                route("DELETE", "/v1/convai/secrets/{secret_id}"),
                [_str("secret_id", "Secret ID")], group="secrets")


def _register_phone(builder: CatalogBuilder) -> None:
    phone_id = _str("phone_number_id", "Phone number ID")

    builder.add("list_phones", "List phone numbers", SAFE,
                route("GET", "/v1/convai/phone-numbers"), group="phone")
    builder.add("get_phone", "Get a phone number", SAFE,
                route("GET", "/v1/convai/phone-numbers/{phone_number_id}"),
                [phone_id], group="phone")
    builder.add(
        "update_phone", "Assign a phone number to an agent", ADMIN,
        route("PATCH", "/v1/convai/phone-numbers/{phone_number_id}", body=("agent_id",)),
        [phone_id, _str("agent_id", "Agent to route calls to")],
        group="phone",
    )
    builder.add("delete_phone", "Delete a phone number", DESTRUCTIVE,
                route("DELETE", "/v1/convai/phone-numbers/{phone_number_id}"),
                [phone_id], group="phone")
    builder.add(
        "import_phone", "Import a Twilio or SIP trunk phone number", ADMIN,
        import_phone,
        [
            _str("number", "Phone number in E.164 format"),
            _str("provider", "Telephony provider", enum=("twilio", "sip_trunk")),
            _str("label", "Label for the number", required=False),
            _str("twilio_sid", "Twilio account SID (provider=twilio)", required=False),
            _str("twilio_token", "Twilio auth token (provider=twilio)", required=False),
            _str("sip_uri", "SIP trunk URI (provider=sip_trunk)", required=False),
        ],
        idempotent=False,
        group="phone",
    )
    builder.add(
        "test_phone_call", "Place a test call from a phone number", ADMIN,
        route("POST", "/v1/convai/phone-numbers/{phone_number_id}/test-call", body=("agent_id",)),
        [phone_id, _str("agent_id", "Agent to answer the test call", required=False)],
        idempotent=False,
        group="phone",
    )


def _register_projects(builder: CatalogBuilder) -> None:
    project_id = _str("project_id", "Project ID")

    builder.add("list_projects", "List Studio projects", SAFE,
                route("GET", "/v1/studio/projects"), group="projects")
    builder.add("get_project", "Get a Studio project", SAFE,
                route("GET", "/v1/studio/projects/{project_id}"), [project_id], group="projects")
    builder.add("convert_project", "Start converting a Studio project to audio", ADMIN,
                route("POST", "/v1/studio/projects/{project_id}/convert"),
                [project_id], idempotent=False, group="projects")
    builder.add("delete_project", "Delete a Studio project", DESTRUCTIVE,
                route("DELETE", "/v1/studio/projects/{project_id}"), [project_id], group="projects")
    builder.add("list_project_snapshots", "List the audio snapshots of a Studio project", SAFE,
                route("GET", "/v1/studio/projects/{project_id}/snapshots"),
                [project_id], group="projects")
    builder.add("get_project_audio", "Download the audio of a Studio project", SAFE,
                route("GET", "/v1/studio/projects/{project_id}/audio", audio=True),
                [project_id, _output_file()], group="projects")


def _register_agent_tools(builder: CatalogBuilder) -> None:
    tool_id = _str("tool_id", "Tool ID")

    builder.add("list_tools", "List tools available to agents", SAFE,
                route("GET", "/v1/convai/tools"), group="agent_tools")
    builder.add("get_tool", "Get an agent tool", SAFE,
                route("GET", "/v1/convai/tools/{tool_id}"), [tool_id], group="agent_tools")
    builder.add("delete_tool", "Delete an agent tool", DESTRUCTIVE,
                route("DELETE", "/v1/convai/tools/{tool_id}"), [tool_id], group="agent_tools")


def _register_audio_native(builder: CatalogBuilder) -> None:
    builder.add(
        "list_audio_native", "List audio native projects", SAFE,
        route("GET", "/v1/audio-native", query={"limit": "page_size", "page": "page"}),
        [_page_size(), _int("page", "Page number", min_value=1)],
        group="audio_native",
    )
    builder.add(
        "create_audio_native", "Create an embeddable audio player project", ADMIN,
        route("POST", "/v1/audio-native",
              form=("name", "author", "title", "voice_id", "model_id", "auto_convert"),
              files={"file": "file"}),
        [
            _str("name", "Project name"),
            _file("file", "Text or HTML file to narrate", required=False),
            _str("author", "Author shown in the player", required=False),
            _str("title", "Title shown in the player", required=False),
            _str("voice_id", "Narration voice", required=False),
            _str("model_id", "Narration model", required=False),
            _bool("auto_convert", "Convert immediately after creation"),
        ],
        idempotent=False,
        group="audio_native",
    )
    builder.add(
        "get_audio_native", "Get the settings of an audio native project", SAFE,
        route("GET", "/v1/audio-native/{project_id}/settings"),
        [_str("project_id", "Audio native project ID")],
        group="audio_native",
    )


def register_default_operations(builder: CatalogBuilder) -> CatalogBuilder:
    """Add every built-in operation to `builder`."""
    _register_audio(builder)
    _register_music(builder)
    _register_voices(builder)
    _register_library(builder)
    _register_dubbing(builder)
    _register_history(builder)
    _register_agents(builder)
    _register_conversations(builder)
    _register_knowledge(builder)
    _register_account(builder)
    _register_pronunciation(builder)
    _register_workspace(builder)
    _register_phone(builder)
    _register_projects(builder)
    _register_agent_tools(builder)
    _register_audio_native(builder)
    return builder


def build_default_catalog() -> OperationCatalog:
    """Create the catalog with all built-in operations."""
    return register_default_operations(CatalogBuilder()).build()

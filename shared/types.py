# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from enum import StrEnum


class Emotion(StrEnum):
    JOY = "joy"
    HOPE = "hope"
    LOVE = "love"
    RESILIENCE = "resilience"
    GRATITUDE = "gratitude"
    COURAGE = "courage"
    PEACE = "peace"
    WONDER = "wonder"


class Visibility(StrEnum):
    WORLD = "world"
    LOCAL = "local"
    PRIVATE = "private"
    SEMI_ANONYMOUS = "semi_anonymous"


class EchoStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    DELETED = "deleted"


class ReactionType(StrEnum):
    """Empathic reactions an echo can receive."""

    UNDERSTAND = "understand"
    SUPPORT = "support"
    REFLECT = "reflect"


class ConversationType(StrEnum):
    DIRECT = "direct"
    GROUP = "group"


class NotificationType(StrEnum):
    LIKE = "like"
    REACTION = "reaction"
    COMMENT = "comment"
    MIRROR = "mirror"
    MESSAGE = "message"
    FOLLOW = "follow"


class Theme(StrEnum):
    SYSTEM = "system"
    LIGHT = "light"
    DARK = "dark"


# Echoes with these visibilities show up on the map, in search and on
# public profiles.
PUBLIC_VISIBILITIES = (Visibility.WORLD.value, Visibility.LOCAL.value)

EMOTION_KEYS = tuple(e.value for e in Emotion)

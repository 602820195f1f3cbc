"""ChatGPT (chatgpt.com) selectors.

The composer is a ProseMirror contenteditable that ignores ``value``; it picks
up a programmatic edit once ``textContent`` is set and input/change/keyup
events are dispatched.  While a reply streams, the send button is replaced by
a stop button and comes back when the model is done.
"""

ORIGINS = ("https://chatgpt.com", "https://chat.openai.com")
LANDING_URL = "https://chatgpt.com/"

PROMPT_INPUT = "#prompt-textarea"
SEND_BUTTON = 'button[data-testid="send-button"]'
BUSY_INDICATOR = 'button[data-testid="stop-button"], button.bg-black .icon-lg'
CONVERSATION_ROOT = "main"
ANSWER_CONTAINER = "div.agent-turn"
ANSWER_TEXT = 'div[data-message-author-role="assistant"]'
NEW_CHAT_BUTTON = 'a[data-discover="true"]'

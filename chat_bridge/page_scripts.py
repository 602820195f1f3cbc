"""JavaScript evaluated inside the target page.

Every snippet is an arrow function taking a single array argument so it can be
passed straight to ``page.evaluate(script, [args...])``.  The snippets only
touch the DOM; waiting and deciding happen on the Python side.
"""

# Returns "missing", "disabled" or "enabled".
CONTROL_STATE_JS = r"""
([selector]) => {
  const el = document.querySelector(selector);
  if (!el) return 'missing';
  if (el.disabled || el.getAttribute('aria-disabled') === 'true') return 'disabled';
  return 'enabled';
}
"""

CLICK_JS = r"""
([selector]) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  el.click();
  return true;
}
"""

# Contenteditable surfaces that listen to input events: assign the text and
# replay the events a user edit would fire.
INSERT_ASSIGN_JS = r"""
([selector, text]) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  el.focus();
  el.textContent = text;
  for (const type of ['input', 'change']) {
    el.dispatchEvent(new Event(type, { bubbles: true, cancelable: true }));
  }
  el.dispatchEvent(new KeyboardEvent('keyup', { bubbles: true, cancelable: true }));
  return true;
}
"""

# Editors that only accept pasted content: hand them a synthetic paste event
# carrying a DataTransfer with the plain text.
INSERT_PASTE_JS = r"""
([selector, text]) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  el.focus();
  const clipboardData = new DataTransfer();
  clipboardData.setData('text/plain', text);
  const pasteEvent = new Event('paste', { bubbles: true, cancelable: true });
  Object.defineProperty(pasteEvent, 'clipboardData', { value: clipboardData });
  el.dispatchEvent(pasteEvent);
  return true;
}
"""

# One atomic reading for the completion detector: text of the last answer
# container, how many answer containers there are, and whether the send
# control is present and enabled.
SAMPLE_JS = r"""
([root, container, inner, send]) => {
  const scope = document.querySelector(root) || document;
  const answers = scope.querySelectorAll(container);
  let text = null;
  if (answers.length) {
    const last = answers[answers.length - 1];
    const target = inner ? last.querySelector(inner) : last;
    text = target ? target.textContent : null;
  }
  const button = document.querySelector(send);
  const ready = !!button && !button.disabled && button.getAttribute('aria-disabled') !== 'true';
  return { text, ready, turns: answers.length };
}
"""

# Attach a MutationObserver to the conversation root that forwards the size
# of every mutation batch to the exposed binding.  Re-attaching replaces the
# previous observer.
OBSERVE_JS = r"""
([root, binding]) => {
  const el = document.querySelector(root);
  if (!el) return false;
  if (window.__chatBridgeObserver) window.__chatBridgeObserver.disconnect();
  const observer = new MutationObserver((mutations) => {
    try { window[binding](mutations.length); } catch (e) { /* page unloading */ }
  });
  observer.observe(el, { childList: true, subtree: true, characterData: true });
  window.__chatBridgeObserver = observer;
  return true;
}
"""

DETACH_JS = r"""
() => {
  if (!window.__chatBridgeObserver) return false;
  window.__chatBridgeObserver.disconnect();
  window.__chatBridgeObserver = null;
  return true;
}
"""

# Which of the given selectors currently match nothing.
MISSING_SELECTORS_JS = r"""
([selectors]) => selectors.filter((s) => document.querySelector(s) === null)
"""

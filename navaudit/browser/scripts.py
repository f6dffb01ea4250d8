"""JavaScript payloads evaluated in the audited page.

Every script takes a single argument object and returns JSON-serializable
data whose keys match what the menu engine reads. Elements are addressed by
``(selector, index)`` into ``document.querySelectorAll`` so the same
addressing works for page.evaluate() and the in-memory test driver.
"""

# Shared helpers, prepended to the scripts that need them.
_HELPERS = """
    const nth = (selector, index) => {
        try {
            return document.querySelectorAll(selector)[index || 0] || null;
        } catch (e) {
            return null;
        }
    };
    const rectOf = (node) => {
        const r = node.getBoundingClientRect();
        return { x: r.x, y: r.y, width: r.width, height: r.height };
    };
    const classText = (node) => {
        if (!node) return null;
        const value = typeof node.className === 'string'
            ? node.className
            : (node.getAttribute && node.getAttribute('class')) || '';
        return value.trim() || null;
    };
"""


COUNT_JS = """
(selector) => {
    try {
        return document.querySelectorAll(selector).length;
    } catch (e) {
        return 0;
    }
}
"""


GET_ATTRIBUTE_JS = """
({ selector, index, name }) => {
""" + _HELPERS + """
    const el = nth(selector, index);
    return el ? el.getAttribute(name) : null;
}
"""


COLLECT_CANDIDATES_JS = """
({ selector, attribute, container }) => {
    const all = Array.from(document.querySelectorAll(selector));
    const members = new Set(all);
    return all.map((el, index) => {
        let nested = false;
        let inside = false;
        for (let p = el.parentElement; p; p = p.parentElement) {
            if (members.has(p)) nested = true;
            if (container && p.hasAttribute(container)) inside = true;
        }
        return {
            index,
            existing_id: el.getAttribute(attribute),
            inside_container: inside,
            nested_in_candidate: nested,
        };
    });
}
"""


ASSIGN_ATTRIBUTE_JS = """
({ selector, assignments, attribute }) => {
    const all = document.querySelectorAll(selector);
    let assigned = 0;
    for (const [index, value] of assignments) {
        const el = all[index];
        if (el && !el.hasAttribute(attribute)) {
            el.setAttribute(attribute, value);
            assigned++;
        }
    }
    return assigned;
}
"""


CLEAR_ATTRIBUTE_JS = """
(attribute) => {
    const marked = document.querySelectorAll(`[${attribute}]`);
    marked.forEach((el) => el.removeAttribute(attribute));
    return marked.length;
}
"""


SNAPSHOT_MENU_JS = """
({ selector, index, dropdownSelector }) => {
""" + _HELPERS + """
    const el = nth(selector, index);
    if (!el) return null;

    const names = [
        'aria-expanded', 'aria-controls', 'aria-label', 'aria-labelledby', 'role',
        'aria-haspopup', 'aria-hidden', 'aria-pressed',
        'data-desktop-menu-type', 'data-mobile-menu-type',
    ];
    const attributes = {};
    for (const name of names) attributes[name] = el.getAttribute(name);

    let labelledbyText = null;
    const labelledby = el.getAttribute('aria-labelledby');
    if (labelledby) {
        labelledbyText = labelledby.split(/\\s+/)
            .map((id) => document.getElementById(id))
            .filter(Boolean)
            .map((node) => (node.textContent || '').trim())
            .join(' ') || null;
    }

    let hasDropdowns = false;
    try {
        hasDropdowns = !!el.querySelector(dropdownSelector);
    } catch (e) {
        hasDropdowns = false;
    }

    const links = Array.from(el.querySelectorAll('a'));
    const style = window.getComputedStyle(el);
    const parent = el.parentElement;
    return {
        tag: el.tagName.toLowerCase(),
        id: el.id || null,
        classes: Array.from(el.classList),
        link_texts: links.map((a) => (a.textContent || '').trim()),
        link_count: links.length,
        child_tags: Array.from(el.children).map((c) => c.tagName.toLowerCase()),
        children_count: el.children.length,
        parent_id: parent ? parent.id || null : null,
        parent_class: classText(parent),
        attributes,
        labelledby_text: labelledbyText,
        has_dropdowns: hasDropdowns,
        has_popup_controls: !!el.querySelector('[aria-haspopup="true"], [aria-haspopup="menu"]'),
        in_footer: !!el.closest('footer, [role="contentinfo"]'),
        display: style.display,
        position: style.position,
    };
}
"""


SNAPSHOT_TOGGLE_JS = """
({ selector, index, menuAttribute }) => {
""" + _HELPERS + """
    const el = nth(selector, index);
    if (!el) return null;

    const names = [
        'aria-expanded', 'aria-controls', 'aria-label', 'aria-labelledby', 'role',
        'aria-haspopup', 'aria-hidden', 'aria-pressed',
    ];
    const attributes = {};
    for (const name of names) attributes[name] = el.getAttribute(name);

    let target = null;
    const controls = (el.getAttribute('aria-controls') || '').split(/\\s+/).filter(Boolean);
    for (const id of controls) {
        target = document.getElementById(id);
        if (target) break;
    }

    let menuId = null;
    if (target) {
        const marked = target.hasAttribute(menuAttribute)
            ? target
            : target.querySelector(`[${menuAttribute}]`) || target.closest(`[${menuAttribute}]`);
        menuId = marked ? marked.getAttribute(menuAttribute) : null;
    }

    const iconClasses = [];
    for (const icon of el.querySelectorAll('i, svg, img, span')) {
        for (const name of Array.from(icon.classList || [])) iconClasses.push(name);
    }

    const parent = el.parentElement;
    return {
        tag: el.tagName.toLowerCase(),
        id: el.id || null,
        classes: Array.from(el.classList),
        text: (el.textContent || '').trim().slice(0, 100),
        attributes,
        parent_id: parent ? parent.id || null : null,
        parent_class: classText(parent),
        icon_classes: iconClasses,
        display: window.getComputedStyle(el).display,
        controls_menu_id: menuId,
        controls_exists: !!target,
    };
}
"""


VISIBILITY_PROBE_JS = """
({ selector, index, itemSelector }) => {
""" + _HELPERS + """
    const el = nth(selector, index);
    if (!el) return { exists: false };

    const viewport = { width: window.innerWidth, height: window.innerHeight };
    const px = (value) => {
        const n = parseFloat(value);
        return Number.isFinite(n) ? n : null;
    };

    const chain = [];
    for (let node = el; node && node.nodeType === 1; node = node.parentElement) {
        const s = window.getComputedStyle(node);
        chain.push({
            tag: node.tagName.toLowerCase(),
            display: s.display,
            visibility: s.visibility,
            opacity: parseFloat(s.opacity),
            transform: s.transform,
            clip: s.clip,
            clip_path: s.clipPath,
            overflow: `${s.overflowX} ${s.overflowY}`,
            max_height: s.maxHeight === 'none' ? null : px(s.maxHeight),
            height: s.display === 'contents' ? null : px(s.height),
            focused: document.activeElement === node,
            aria_hidden: node.getAttribute('aria-hidden'),
            rect: rectOf(node),
        });
    }

    // display:contents boxes report hidden to checkVisibility()
    const ownStyle = window.getComputedStyle(el);
    let native = null;
    if (typeof el.checkVisibility === 'function' && ownStyle.display !== 'contents') {
        native = el.checkVisibility({ checkOpacity: false, checkVisibilityCSS: true });
    }

    const active = document.activeElement;
    const isActive = (controller) => !!controller && (
        controller === active
        || controller.getAttribute('aria-expanded') === 'true'
        || (controller.tagName === 'LI' && active && controller.contains(active))
    );
    let controllerActive = false;
    const submenu = el.closest('ul, ol, [role="menu"], .sub-menu, .dropdown-menu, .dropdown');
    for (const node of [el, submenu]) {
        if (!node || controllerActive) continue;
        if (node.id) {
            const escaped = window.CSS && CSS.escape ? CSS.escape(node.id) : node.id;
            for (const c of document.querySelectorAll(`[aria-controls~="${escaped}"]`)) {
                if (isActive(c)) controllerActive = true;
            }
        }
        const previous = node.previousElementSibling;
        if (previous && previous.hasAttribute('aria-expanded') && isActive(previous)) {
            controllerActive = true;
        }
        const li = node.parentElement && node.parentElement.closest('li');
        if (li && node !== el.closest('nav, [role="navigation"]')) {
            const control = Array.from(li.children).find((c) => c !== node && c.hasAttribute('aria-expanded'));
            if (isActive(control) || (submenu === node && li.contains(active) && active !== document.body)) {
                controllerActive = true;
            }
        }
    }

    const role = (el.getAttribute('role') || '').toLowerCase();
    const isNavigation = el.tagName === 'NAV' || role === 'navigation';
    const label = [
        el.getAttribute('aria-label') || '',
        el.id || '',
        classText(el) || '',
    ].join(' ').toLowerCase();
    const isMain = isNavigation && (
        /main|primary/.test(label) || !!el.parentElement && !!el.parentElement.closest('header, [role="banner"]')
    );

    let renderedItems = 0;
    if (isMain) {
        let items = [];
        try {
            items = Array.from(el.querySelectorAll(itemSelector)).slice(0, 50);
        } catch (e) {
            items = [];
        }
        for (const item of items) {
            const r = item.getBoundingClientRect();
            const s = window.getComputedStyle(item);
            if (
                r.width > 0 && r.height > 0
                && r.right > 0 && r.bottom > 0
                && r.left < viewport.width && r.top < viewport.height
                && s.visibility !== 'hidden' && s.display !== 'none' && parseFloat(s.opacity) > 0
            ) {
                renderedItems++;
            }
        }
    }

    return {
        exists: true,
        check_visibility: native,
        rect: rectOf(el),
        viewport,
        chain,
        aria_expanded: el.getAttribute('aria-expanded'),
        aria_controls: el.getAttribute('aria-controls'),
        controller_active: controllerActive,
        is_main_navigation: isMain,
        rendered_items: renderedItems,
    };
}
"""


ACTIVE_ELEMENT_JS = """
({ scopeSelector, scopeIndex, marker, value }) => {
""" + _HELPERS + """
    const el = document.activeElement;
    if (!el || el === document.body || el === document.documentElement) return null;

    const scope = scopeSelector ? nth(scopeSelector, scopeIndex) : null;
    const steps = [];
    for (let node = el; node && node.nodeType === 1; node = node.parentElement) {
        const parent = node.parentElement;
        const position = parent ? Array.prototype.indexOf.call(parent.children, node) : 0;
        steps.unshift(`${node.tagName.toLowerCase()}:${position}`);
    }

    const previous = el.getAttribute(marker);
    el.setAttribute(marker, value);
    return {
        tag: el.tagName.toLowerCase(),
        is_link: el.tagName === 'A',
        inside_scope: scopeSelector ? !!scope && scope.contains(el) : true,
        path: steps.join('/'),
        previous_mark: previous,
    };
}
"""


TAG_RELATED_DROPDOWN_JS = """
({ selector, index, attribute, value, containerSelector, useAriaControls }) => {
""" + _HELPERS + """
    const el = nth(selector, index);
    if (!el) return null;

    const matches = (node) => {
        try {
            return node.matches(containerSelector);
        } catch (e) {
            return false;
        }
    };

    let container = null;
    if (useAriaControls) {
        const ids = (el.getAttribute('aria-controls') || '').split(/\\s+/).filter(Boolean);
        for (const id of ids) {
            container = document.getElementById(id);
            if (container) break;
        }
    }
    if (!container) {
        for (let sibling = el.nextElementSibling; sibling; sibling = sibling.nextElementSibling) {
            if (matches(sibling)) {
                container = sibling;
                break;
            }
        }
    }
    if (!container) {
        const li = el.closest('li');
        if (li) {
            for (const node of li.querySelectorAll('*')) {
                if (node !== el && !node.contains(el) && matches(node)) {
                    container = node;
                    break;
                }
            }
        }
    }
    if (!container) return null;

    const existing = container.getAttribute(attribute);
    if (existing) return existing;
    container.setAttribute(attribute, value);
    return value;
}
"""


GUARD_NAVIGATION_JS = """
({ selector, index }) => {
""" + _HELPERS + """
    const el = nth(selector, index);
    if (!el) return false;
    el.addEventListener('click', (event) => event.preventDefault(), { once: true, capture: true });
    return true;
}
"""


BLUR_JS = """
() => {
    const el = document.activeElement;
    if (el && el !== document.body && typeof el.blur === 'function') el.blur();
}
"""


CLICK_OUTSIDE_JS = """
() => {
    const options = { bubbles: true, cancelable: true, view: window, clientX: 1, clientY: 1 };
    for (const type of ['pointerdown', 'mousedown', 'pointerup', 'mouseup', 'click']) {
        const EventType = type.startsWith('pointer') && window.PointerEvent ? PointerEvent : MouseEvent;
        document.body.dispatchEvent(new EventType(type, options));
    }
}
"""


ELEMENT_HANDLE_JS = """
({ selector, index }) => {
""" + _HELPERS + """
    return nth(selector, index);
}
"""

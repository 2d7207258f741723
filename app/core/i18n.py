from __future__ import annotations


STRINGS: dict[str, str] = {
    # Common
    "common.private_only": "Используйте бота в личном чате.",
    "common.need_household": "Сначала /create_household <название> или /join_household <код>",
    "common.already_in_household": "Вы уже в домохозяйстве.",
    "common.failed": "Что-то пошло не так, попробуй ещё раз чуть позже.",
    "common.not_found": "Не найдено",
    "common.stale_button": "Эта кнопка уже неактуальна",
    "common.skip": "⏭ Пропустить",
    "common.no_category": "Без категории",
    "common.default_household": "Семья",
    "unknown.use_start": "Не знаю такой команды. /help — список команд.",
    "ping": "pong",
    # Start / help
    "start.with_household": (
        "Привет! Домохозяйство: <b>{name}</b>\n\n"
        "Команды:\n"
        "/add — добавить хотелку (пошагово)\n"
        "/list [категория] — список\n"
        "/budget [сумма] — бюджет\n"
        "/categories — показать категории\n"
        "/setprice &lt;id&gt; &lt;цена&gt; — изменить цену\n"
        "/cancel — отменить добавление\n"
        "/help — справка"
    ),
    "start.no_household": "Добро пожаловать! /create_household <название> или /join_household <код>",
    "help.text": (
        "/add — добавить хотелку (пошагово)\n"
        "/add название | цена — добавить одной строкой\n"
        "/list [фильтр] — список хотелок\n"
        "/budget [сумма] — показать или задать бюджет\n"
        "/categories — категории\n"
        "/setprice <id> <цена> — изменить цену\n"
        "/cancel — отменить добавление\n"
        "/create_household <название> — создать домохозяйство\n"
        "/join_household <код> — присоединиться по коду"
    ),
    # Household
    "household.created": (
        "Домохозяйство создано.\nКод приглашения: <code>{code}</code>\n"
        "Пусть второй участник отправит: /join_household {code}"
    ),
    "household.join_usage": "Укажи код: /join_household ABC123",
    "household.bad_code": "Неверный код.",
    "household.joined": "Готово! Ты в домохозяйстве <b>{name}</b>. Добавляй хотелки через /add",
    # Categories
    "categories.title": "Категории:",
    "categories.empty": "Категории не найдены",
    "categories.row": "• {name} ({slug}) — {count}",
    "categories.items_empty": "В категории «{name}» пока пусто.",
    # Budget
    "budget.summary": "Бюджет: {ceiling}\nАктивные хотелки: {total}\nОстаток: {remainder}",
    "budget.usage": "Введи сумму: /budget 5000",
    "budget.set": "Новый бюджет: {amount}",
    # Wizard
    "wizard.ask_title": "Введи название хотелки (можно приложить фото):",
    "wizard.title_empty": "Нужно ввести название текстом 🙂",
    "wizard.ask_category": "«{title}» — выбери категорию:",
    "wizard.category_set": "Категория назначена",
    "wizard.ask_price": "Сколько стоит? Выбери сумму или введи числом (например 1500):",
    "wizard.ask_price_manual": "Введи цену числом (например 1200)",
    "wizard.price_bad": "Пришли только число, например 1500",
    "wizard.done": "Готово: {line}",
    "wizard.restart": "Черновик потерялся. Попробуй ещё раз: /add",
    "wizard.cancelled": "Добавление отменено.",
    "wizard.nothing_to_cancel": "Нечего отменять.",
    "wizard.added_single": "Добавлено: {line}",
    # Items
    "items.list_empty": "Пусто. Добавь через /add",
    "items.updated": "Обновлено: {line}",
    "items.deleted": "Удалено",
    "items.setprice_usage": "Формат: /setprice <id> <цена>",
    "items.id_ambiguous": "Под этот id подходит несколько хотелок, укажи больше символов.",
    "items.price_set": "Цена обновлена: {line}",
    # Notifications
    "notify.new_item": "🆕 {who} добавил(а) хотелку: <b>{title}</b>\nКатегория: {category}",
    "notify.price_updated": "✏ Цена обновлена: <b>{title}</b> — {price}",
    "notify.someone": "Кто-то",
    # Buttons
    "btn.toggle_done": "✅ Готово",
    "btn.toggle_active": "↩️ Вернуть",
    "btn.price": "✏ Цена",
    "btn.delete": "🗑 Удалить",
    "btn.price_manual": "💰 Ввести вручную",
}


def t(key: str, **kwargs) -> str:
    template = STRINGS.get(key) or key
    try:
        return template.format(**kwargs)
    except Exception:
        # If formatting fails, return raw template to avoid crashing the bot.
        return template
